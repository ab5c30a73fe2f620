"""Bake Godot scene collision shapes into a binary triangle mesh shape."""

from collisionbaker.errors import NodeSkipped, ParseError, ShapeBuildError, SkipReason
from collisionbaker.meshshape import MeshShape, MeshShapeSettings
from collisionbaker.pipeline import BakeReport, BakeSettings, bake_scene, compile_scene
from collisionbaker.records import Constructable, Record, extract
from collisionbaker.scene import SceneIndex, build_index, find_ancestor

__version__ = "0.1.0"

__all__ = [
    "BakeReport",
    "BakeSettings",
    "Constructable",
    "MeshShape",
    "MeshShapeSettings",
    "NodeSkipped",
    "ParseError",
    "Record",
    "SceneIndex",
    "ShapeBuildError",
    "SkipReason",
    "bake_scene",
    "build_index",
    "compile_scene",
    "extract",
    "find_ancestor",
]
