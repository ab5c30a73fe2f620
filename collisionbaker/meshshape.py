"""Triangle mesh collision shape and its binary encoding.

Follows the physics runtime's mesh-shape build steps:

1. Indexify: weld bit-identical vertices into a shared vertex list.
2. Sanitize: drop triangles that reuse an index and exact duplicates.
3. Validate: discard zero-area triangles, refuse to build an empty shape.
4. Active edges: flag the edges that can generate contacts.

Binary layout (little-endian)::

    0x00  char[4]   magic "JMSH"
    0x04  u32       version
    0x08  u32       vertex count V
    0x0C  u32       triangle count T
    0x10  f32[3]    bounds min
    0x1C  f32[3]    bounds max
    0x28  f32[3]*V  vertices
    ....  (u32[3], u8)*T  triangle indices + active edge bits
    ....  zero padding to a 4 byte boundary
"""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Tuple

import numpy

from collisionbaker.errors import ShapeBuildError

logger = logging.getLogger(__name__)

MESH_SHAPE_MAGIC = b"JMSH"
MESH_SHAPE_VERSION = 1
HEADER_FORMAT = "<4sIII"
BOUNDS_FORMAT = "<6f"
TRIANGLE_DTYPE = numpy.dtype([("indices", "<u4", (3,)), ("active_edges", "u1")])

DEFAULT_ACTIVE_EDGE_ANGLE_DEG = 5.0
# Normals of back-to-back triangles are within ~1 degree of opposite
BACK_TO_BACK_COS = -0.999848
MINIMUM_NORMAL_LENGTH_SQ = 1e-10
MAX_INDEX = 0xFFFFFFFF


def align(n: int, a: int) -> int:
    """Align n to next multiple of a"""
    return (n + (a - 1)) & ~(a - 1)


def cos_threshold_from_angle(angle_deg: float) -> float:
    return math.cos(math.radians(angle_deg))


# ---------------------------------------------------------------------------
# Build steps
# ---------------------------------------------------------------------------


def indexify(triangles: numpy.ndarray) -> Tuple[numpy.ndarray, numpy.ndarray]:
    """Weld identical vertices. Returns (vertices (V,3), indices (T,3)).

    Vertices keep the order of their first appearance.
    """
    flat = numpy.asarray(triangles, dtype=numpy.float32).reshape(-1, 3)
    if flat.shape[0] == 0:
        return numpy.zeros((0, 3), dtype=numpy.float32), numpy.zeros((0, 3), dtype=numpy.uint32)

    unique, first_seen, inverse = numpy.unique(flat, axis=0, return_index=True, return_inverse=True)
    order = numpy.argsort(first_seen, kind="stable")
    rank = numpy.empty_like(order)
    rank[order] = numpy.arange(order.size)

    vertices = unique[order].astype(numpy.float32)
    indices = rank[inverse.reshape(-1)].reshape(-1, 3).astype(numpy.uint32)
    return vertices, indices


def sanitize(indices: numpy.ndarray) -> numpy.ndarray:
    """Remove triangles with a repeated index and duplicate triangles.

    Two triangles are duplicates when one is a rotation of the other; the
    mirrored winding counts as a different triangle.
    """
    kept: List[Tuple[int, int, int]] = []
    seen = set()
    for a, b, c in numpy.asarray(indices).tolist():
        if a == b or b == c or c == a:
            continue
        # rotate so the smallest index leads, winding preserved
        if b < a and b < c:
            key = (b, c, a)
        elif c < a and c < b:
            key = (c, a, b)
        else:
            key = (a, b, c)
        if key in seen:
            continue
        seen.add(key)
        kept.append((a, b, c))
    return numpy.array(kept, dtype=numpy.uint32).reshape(-1, 3)


def triangle_normals(vertices: numpy.ndarray, indices: numpy.ndarray) -> numpy.ndarray:
    """Unnormalized (v1 - v0) x (v2 - v0) per triangle."""
    v0 = vertices[indices[:, 0]].astype(numpy.float64)
    v1 = vertices[indices[:, 1]].astype(numpy.float64)
    v2 = vertices[indices[:, 2]].astype(numpy.float64)
    return numpy.cross(v1 - v0, v2 - v0)


def is_edge_active(normal1: numpy.ndarray, normal2: numpy.ndarray, edge_direction: numpy.ndarray,
                   cos_threshold: float) -> bool:
    """Whether the edge shared by two triangles can produce contacts.

    normal1/normal2 are unit normals, edge_direction runs along the edge as
    seen from the first triangle.
    """
    cos_angle = float(numpy.dot(normal1, normal2))
    if cos_angle < BACK_TO_BACK_COS:
        return True
    # concave edges never collide first
    if float(numpy.dot(numpy.cross(normal1, normal2), edge_direction)) < 0.0:
        return False
    return cos_angle < cos_threshold


def compute_active_edges(vertices: numpy.ndarray, indices: numpy.ndarray, cos_threshold: float) -> numpy.ndarray:
    """Bit ``e`` of the result is set when edge (e, e+1) of the triangle is active.

    Border edges and edges shared by more than two triangles are always active.
    """
    num_triangles = len(indices)
    flags = numpy.zeros(num_triangles, dtype=numpy.uint8)
    if num_triangles == 0:
        return flags

    normals = triangle_normals(vertices, indices)
    lengths = numpy.linalg.norm(normals, axis=1, keepdims=True)
    unit_normals = normals / numpy.where(lengths > 0.0, lengths, 1.0)

    edge_users: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
    for tri_id, tri in enumerate(indices.tolist()):
        for edge_idx in range(3):
            a = tri[edge_idx]
            b = tri[(edge_idx + 1) % 3]
            edge_users.setdefault((min(a, b), max(a, b)), []).append((tri_id, edge_idx))

    for users in edge_users.values():
        if len(users) != 2:
            for tri_id, edge_idx in users:
                flags[tri_id] |= 1 << edge_idx
            continue

        (tri1, edge1), (tri2, edge2) = users
        a = int(indices[tri1][edge1])
        b = int(indices[tri1][(edge1 + 1) % 3])
        edge_direction = vertices[b].astype(numpy.float64) - vertices[a].astype(numpy.float64)
        if is_edge_active(unit_normals[tri1], unit_normals[tri2], edge_direction, cos_threshold):
            flags[tri1] |= 1 << edge1
            flags[tri2] |= 1 << edge2

    return flags


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------


@dataclass
class MeshShape:
    vertices: numpy.ndarray
    triangles: numpy.ndarray
    active_edges: numpy.ndarray
    bounds_min: numpy.ndarray
    bounds_max: numpy.ndarray

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    def world_triangles(self) -> numpy.ndarray:
        """(T, 3, 3) positions, handy for previews and comparisons."""
        return self.vertices[self.triangles]

    def to_bytes(self) -> bytes:
        blob = bytearray()
        blob.extend(struct.pack(HEADER_FORMAT, MESH_SHAPE_MAGIC, MESH_SHAPE_VERSION,
                                len(self.vertices), len(self.triangles)))
        blob.extend(struct.pack(BOUNDS_FORMAT, *self.bounds_min.tolist(), *self.bounds_max.tolist()))
        blob.extend(numpy.ascontiguousarray(self.vertices, dtype="<f4").tobytes())

        packed = numpy.zeros(len(self.triangles), dtype=TRIANGLE_DTYPE)
        packed["indices"] = self.triangles
        packed["active_edges"] = self.active_edges
        blob.extend(packed.tobytes())

        blob.extend(b"\x00" * (align(len(blob), 4) - len(blob)))
        return bytes(blob)

    def save_binary_state(self, stream: BinaryIO) -> None:
        stream.write(self.to_bytes())

    @classmethod
    def from_bytes(cls, data: bytes) -> "MeshShape":
        header_size = struct.calcsize(HEADER_FORMAT)
        bounds_size = struct.calcsize(BOUNDS_FORMAT)
        if len(data) < header_size + bounds_size:
            raise ValueError("Mesh shape data too small to contain a header")

        magic, version, num_vertices, num_triangles = struct.unpack_from(HEADER_FORMAT, data, 0)
        if magic != MESH_SHAPE_MAGIC:
            raise ValueError(f"Bad mesh shape magic {magic!r}")
        if version != MESH_SHAPE_VERSION:
            raise ValueError(f"Unsupported mesh shape version {version}")

        bounds = struct.unpack_from(BOUNDS_FORMAT, data, header_size)
        offset = header_size + bounds_size
        vertex_bytes = num_vertices * 12
        triangle_bytes = num_triangles * TRIANGLE_DTYPE.itemsize
        if len(data) < offset + vertex_bytes + triangle_bytes:
            raise ValueError("Mesh shape data is truncated")

        vertices = numpy.frombuffer(data, dtype="<f4", count=num_vertices * 3, offset=offset).reshape(-1, 3)
        offset += vertex_bytes
        packed = numpy.frombuffer(data, dtype=TRIANGLE_DTYPE, count=num_triangles, offset=offset)

        return cls(
            vertices=vertices.astype(numpy.float32),
            triangles=packed["indices"].astype(numpy.uint32).reshape(-1, 3),
            active_edges=packed["active_edges"].astype(numpy.uint8),
            bounds_min=numpy.array(bounds[:3], dtype=numpy.float32),
            bounds_max=numpy.array(bounds[3:], dtype=numpy.float32),
        )


class MeshShapeSettings:
    """Collects a triangle soup and turns it into a :class:`MeshShape`."""

    def __init__(self, triangles: numpy.ndarray,
                 active_edge_cos_threshold: float = cos_threshold_from_angle(DEFAULT_ACTIVE_EDGE_ANGLE_DEG)):
        self.active_edge_cos_threshold = active_edge_cos_threshold
        self.triangle_vertices, indices = indexify(triangles)
        self.indexed_triangles = sanitize(indices)

    def create(self) -> MeshShape:
        """Validate and build the shape.

        Raises:
            ShapeBuildError: no usable triangles, or too many vertices to index.
        """
        vertices = self.triangle_vertices
        indices = self.indexed_triangles

        if len(indices) == 0:
            raise ShapeBuildError("Need triangles to create a mesh shape!")
        if len(vertices) > MAX_INDEX:
            raise ShapeBuildError(f"Too many vertices ({len(vertices)}) to index with 32 bits")

        normals = triangle_normals(vertices, indices)
        valid = numpy.einsum("ij,ij->i", normals, normals) > MINIMUM_NORMAL_LENGTH_SQ
        num_discarded = int(numpy.count_nonzero(~valid))
        if num_discarded:
            logger.warning("Discarded %d of %d triangles (degenerate/zero-area)", num_discarded, len(indices))
            indices = indices[valid]
        if len(indices) == 0:
            raise ShapeBuildError("All triangles are degenerate! Check your mesh geometry.")

        # drop vertices only the discarded triangles used
        used, remap = numpy.unique(indices.reshape(-1), return_inverse=True)
        vertices = vertices[used]
        indices = remap.reshape(-1, 3).astype(numpy.uint32)

        active_edges = compute_active_edges(vertices, indices, self.active_edge_cos_threshold)

        return MeshShape(
            vertices=vertices,
            triangles=indices,
            active_edges=active_edges,
            bounds_min=vertices.min(axis=0),
            bounds_max=vertices.max(axis=0),
        )
