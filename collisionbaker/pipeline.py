"""Scene → collision mesh bake.

For every ``CollisionShape3D`` node in the scene:

* find the ancestor that supplies the transform (first child of the root
  along the declared ``parent`` chain),
* read its ``Transform3D`` and the node's ``shape`` sub-resource,
* read the sub-resource's ``PackedVector3Array`` and bake it into world space.

All baked triangles end up in one mesh. A node that fails any check is
skipped and logged; only a failure to build the final shape stops the run.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import numpy

from collisionbaker import tscn_parser
from collisionbaker.errors import NodeSkipped, SkipReason
from collisionbaker.geometry import TRANSFORM_ARITY, bake_triangles, get_values, triangle_bounds
from collisionbaker.gltf_preview import write_preview
from collisionbaker.meshshape import (
    DEFAULT_ACTIVE_EDGE_ANGLE_DEG,
    MeshShape,
    MeshShapeSettings,
    cos_threshold_from_angle,
)
from collisionbaker.records import Record
from collisionbaker.scene import SceneIndex, find_ancestor

logger = logging.getLogger(__name__)

COLLISION_NODE_TYPE = "CollisionShape3D"
TRANSFORM_TYPE = "Transform3D"
VERTEX_ARRAY_TYPE = "PackedVector3Array"


@dataclass
class BakeSettings:
    collision_type: str = COLLISION_NODE_TYPE
    active_edge_angle_deg: float = DEFAULT_ACTIVE_EDGE_ANGLE_DEG
    gltf_path: Optional[str] = None


@dataclass
class BakeReport:
    triangles: numpy.ndarray = field(default_factory=lambda: numpy.zeros((0, 3, 3), dtype=numpy.float32))
    baked: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, NodeSkipped]] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)


# ---------------------------------------------------------------------------
# Per-node bake
# ---------------------------------------------------------------------------


def bake_node(node: Record, index: SceneIndex) -> numpy.ndarray:
    """Bake one collision node into (T, 3, 3) world-space triangles.

    Raises:
        NodeSkipped: at the first check the node fails.
    """
    ancestor = find_ancestor(node, index.nodes)

    transform = ancestor.get_assignment("transform")
    if transform is None:
        raise NodeSkipped(SkipReason.MISSING_TRANSFORM, "Ancestor has no transform")
    if transform.identifier != TRANSFORM_TYPE or len(transform.arguments) != TRANSFORM_ARITY:
        raise NodeSkipped(
            SkipReason.BAD_TRANSFORM,
            f"Transform did not have the expected format (expected {TRANSFORM_TYPE} with {TRANSFORM_ARITY} "
            f"arguments, actual {transform.identifier} with {len(transform.arguments)} arguments)",
        )

    shape = node.get_assignment("shape")
    if shape is None:
        raise NodeSkipped(SkipReason.MISSING_SHAPE, "Node does not have an associated shape")
    if len(shape.arguments) != 1:
        raise NodeSkipped(
            SkipReason.BAD_SHAPE,
            f"Shape did not have the expected format (expected 1 argument, actual {len(shape.arguments)})",
        )

    shape_id = shape.arguments[0]
    if not isinstance(shape_id, str):
        raise NodeSkipped(SkipReason.BAD_SHAPE_ID, "Failed to obtain shape id")

    resource = index.sub_resources.get(shape_id)
    if resource is None:
        raise NodeSkipped(
            SkipReason.UNKNOWN_SUB_RESOURCE,
            f"Shape id '{shape_id}' does not refer to an existing sub resource",
        )

    data = resource.get_assignment("data")
    if data is None:
        raise NodeSkipped(SkipReason.MISSING_DATA, "Shape does not have associated data")
    if data.identifier != VERTEX_ARRAY_TYPE:
        raise NodeSkipped(
            SkipReason.BAD_DATA,
            f"Data did not have the expected format (expected {VERTEX_ARRAY_TYPE}, actual {data.identifier})",
        )

    transform_values = get_values(transform)
    if transform_values.size == 0:
        raise NodeSkipped(SkipReason.BAD_TRANSFORM_VALUES, "Failed to extract transform values")

    vertex_values = get_values(data)
    if vertex_values.size == 0:
        raise NodeSkipped(SkipReason.BAD_VERTEX_VALUES, "Failed to extract vertice values")

    return bake_triangles(transform_values, vertex_values)


def bake_scene(records: Iterable[Record], collision_type: str = COLLISION_NODE_TYPE) -> BakeReport:
    """Index the records, then bake every collision node into one triangle list."""
    logger.info("Preparing data...")
    index = SceneIndex.build(records)
    logger.debug("Indexed %d nodes and %d sub resources", len(index.nodes), len(index.sub_resources))

    logger.info("Building shapes...")
    report = BakeReport()
    chunks = []
    for path, node in index.nodes.items():
        if node.get_field("type") != collision_type:
            continue

        try:
            triangles = bake_node(node, index)
        except NodeSkipped as exc:
            logger.error("Skipping node '%s' (%s): %s", path, exc.reason.value, exc.detail)
            report.skipped.append((path, exc))
            continue

        logger.debug("Baked %d triangles from node '%s'", len(triangles), path)
        chunks.append(triangles)
        report.baked.append(path)

    if chunks:
        report.triangles = numpy.concatenate(chunks, axis=0)
        low, high = triangle_bounds(report.triangles)
        logger.debug("Baked bounds %s to %s", low.tolist(), high.tolist())

    logger.info(
        "Baked %d triangles from %d nodes (%d skipped)",
        report.triangle_count, len(report.baked), len(report.skipped),
    )
    return report


# ---------------------------------------------------------------------------
# Whole run
# ---------------------------------------------------------------------------


def build_shape(triangles: numpy.ndarray, active_edge_angle_deg: float = DEFAULT_ACTIVE_EDGE_ANGLE_DEG) -> MeshShape:
    """Raises ShapeBuildError when the triangles cannot form a shape."""
    settings = MeshShapeSettings(triangles, active_edge_cos_threshold=cos_threshold_from_angle(active_edge_angle_deg))
    return settings.create()


def compile_scene(input_path: str, output_path: str, settings: Optional[BakeSettings] = None) -> BakeReport:
    """Parse ``input_path``, bake it and write the serialized shape.

    The output file is only written once the shape has been built and
    encoded and the optional preview has been saved, so a failed run leaves
    no shape file behind.
    """
    settings = settings or BakeSettings()

    logger.info("Parsing file...")
    records = tscn_parser.parse_file(input_path)

    report = bake_scene(records, collision_type=settings.collision_type)
    shape = build_shape(report.triangles, settings.active_edge_angle_deg)

    buffer = io.BytesIO()
    shape.save_binary_state(buffer)

    if settings.gltf_path:
        write_preview(report.triangles, settings.gltf_path)
        logger.info("Wrote glTF preview to %s", settings.gltf_path)

    with open(output_path, "wb") as f:
        f.write(buffer.getvalue())
    logger.info("Wrote %d triangles to %s", shape.triangle_count, output_path)

    return report
