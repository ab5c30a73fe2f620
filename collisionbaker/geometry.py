"""Numeric extraction and triangle baking."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy

from collisionbaker.records import Constructable

TRANSFORM_ARITY = 12
VALUES_PER_TRIANGLE = 9


def _to_float(value) -> float:
    try:
        return float(value)
    except OverflowError:
        # int too large for a double
        return math.inf if value > 0 else -math.inf


def get_values(constructable: Constructable) -> numpy.ndarray:
    """Return the constructable's arguments as float32.

    Every argument has to be an int or a float. If any is not, the result is
    an empty array, which is also what a constructable without arguments
    gives; callers check arity before relying on the difference.
    """
    values = []
    for argument in constructable.arguments:
        if isinstance(argument, bool) or not isinstance(argument, (int, float)):
            return numpy.empty(0, dtype=numpy.float32)
        values.append(_to_float(argument))

    with numpy.errstate(over="ignore"):
        return numpy.array(values, dtype=numpy.float64).astype(numpy.float32)


def affine_from_values(values: Sequence[float]) -> Tuple[numpy.ndarray, numpy.ndarray]:
    """Split 12 coefficients into a 3x3 basis and a translation.

    Row ``i`` of the basis is basis vector ``i`` (X, Y, Z), so a point maps as
    ``p @ basis + translation``.
    """
    coefficients = numpy.asarray(values, dtype=numpy.float32).reshape(-1)
    if coefficients.size != TRANSFORM_ARITY:
        raise ValueError(f"Expected {TRANSFORM_ARITY} transform coefficients, got {coefficients.size}")
    basis = coefficients[:9].reshape(3, 3)
    translation = coefficients[9:12]
    return basis, translation


def apply_affine(points: numpy.ndarray, basis: numpy.ndarray, translation: numpy.ndarray) -> numpy.ndarray:
    """points: (..., 3). Returns transformed points of the same shape."""
    return points @ basis + translation


def bake_triangles(transform_values: Sequence[float], vertex_values: Sequence[float]) -> numpy.ndarray:
    """Transform packed vertex data into world-space triangles.

    ``vertex_values`` is consumed nine floats (one triangle) at a time; a
    trailing group shorter than nine is dropped. Each output triangle lists
    its points as (third, second, first) of the source triple.

    Returns:
        float32 array of shape (T, 3, 3): triangle, vertex, xyz.
    """
    basis, translation = affine_from_values(transform_values)

    flat = numpy.asarray(vertex_values, dtype=numpy.float32).reshape(-1)
    num_triangles = flat.size // VALUES_PER_TRIANGLE
    source = flat[:num_triangles * VALUES_PER_TRIANGLE].reshape(num_triangles, 3, 3)

    world = apply_affine(source, basis, translation).astype(numpy.float32)
    return numpy.ascontiguousarray(world[:, ::-1, :])


def triangle_bounds(triangles: numpy.ndarray) -> Tuple[numpy.ndarray, numpy.ndarray]:
    """World-space AABB of a (T, 3, 3) triangle array."""
    points = numpy.asarray(triangles, dtype=numpy.float32).reshape(-1, 3)
    if points.size == 0:
        zero = numpy.zeros(3, dtype=numpy.float32)
        return zero, zero.copy()
    return points.min(axis=0), points.max(axis=0)
