"""Exception types shared across the baker."""

from __future__ import annotations

import enum


class ParseError(ValueError):
    """Scene text could not be tokenized or parsed."""

    def __init__(self, message: str, line: int = 0):
        self.line = line
        if line:
            message = f"line {line}: {message}"
        super().__init__(message)


class SkipReason(enum.Enum):
    MISSING_PARENT = "missing parent field"
    PARENT_NOT_FOUND = "parent not found"
    PARENT_CYCLE = "cycle detected in parent chain"
    MISSING_TRANSFORM = "ancestor has no transform"
    BAD_TRANSFORM = "unexpected transform format"
    MISSING_SHAPE = "no associated shape"
    BAD_SHAPE = "unexpected shape format"
    BAD_SHAPE_ID = "shape id is not a string"
    UNKNOWN_SUB_RESOURCE = "unknown sub resource"
    MISSING_DATA = "shape has no data"
    BAD_DATA = "unexpected data format"
    BAD_TRANSFORM_VALUES = "transform values are not numeric"
    BAD_VERTEX_VALUES = "vertex values are not numeric"


class NodeSkipped(ValueError):
    """A collision node failed validation and is left out of the mesh.

    Recoverable: the driver logs it and continues with the next node.
    """

    def __init__(self, reason: SkipReason, message: str = ""):
        self.reason = reason
        self.detail = message or reason.value
        super().__init__(self.detail)


class ShapeBuildError(ValueError):
    """The accumulated triangles cannot form a mesh shape. Fatal for the run."""
