#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command-line TSCN -> collision mesh baker

Bakes every CollisionShape3D node of a Godot text scene into a single
triangle mesh shape and writes its binary state.

Usage:
  tscn-bake level.tscn level.shape
  tscn-bake level.tscn level.shape --gltf level_collision.glb --log-level DEBUG
"""

import argparse
import logging
import sys

from collisionbaker.errors import ParseError, ShapeBuildError
from collisionbaker.logging_config import setup_logging
from collisionbaker.meshshape import DEFAULT_ACTIVE_EDGE_ANGLE_DEG
from collisionbaker.pipeline import COLLISION_NODE_TYPE, BakeSettings, compile_scene

logger = logging.getLogger("collisionbaker.cli")


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="tscn-bake", description="Bake TSCN collision shapes into a binary mesh shape.")
    p.add_argument("input_filename", help="Input .tscn scene")
    p.add_argument("output_filename", help="Output mesh shape path")
    p.add_argument("--gltf", dest="gltf", default=None, help="Also write the baked mesh as .glb/.gltf")
    p.add_argument("--collision-type", dest="collision_type", default=COLLISION_NODE_TYPE,
                   help=f"Node type to bake (default: {COLLISION_NODE_TYPE})")
    p.add_argument("--active-edge-angle", dest="active_edge_angle", type=float,
                   default=DEFAULT_ACTIVE_EDGE_ANGLE_DEG,
                   help="Edges flatter than this many degrees are inactive (default: %(default)s)")
    p.add_argument("--log-level", dest="log_level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Diagnostic verbosity")
    p.add_argument("--log-file", dest="log_file", default=None, help="Also write diagnostics to this file")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    settings = BakeSettings(
        collision_type=args.collision_type,
        active_edge_angle_deg=args.active_edge_angle,
        gltf_path=args.gltf,
    )
    try:
        compile_scene(args.input_filename, args.output_filename, settings)
    except ParseError as exc:
        logger.error("Failed to parse %s: %s", args.input_filename, exc)
        return 1
    except ShapeBuildError as exc:
        logger.error("Failed to generate collision shape: %s", exc)
        return 1
    except OSError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
