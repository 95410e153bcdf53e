"""
exptools/errors.py

Error taxonomy shared by every tool:
  - ValidationError: malformed or out-of-range input
  - ComputationError: degenerate numeric case (zero mean, rate >= 1, ...)

Both subclass ValueError so callers that already catch ValueError keep working.
"""

from __future__ import annotations
from typing import Dict, Optional


class ToolError(ValueError):
    """Base class for errors that terminate a single tool invocation."""

    kind = "ToolError"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"type": self.kind, "field": self.field, "message": self.message}


class ValidationError(ToolError):
    kind = "ValidationError"


class ComputationError(ToolError):
    kind = "ComputationError"


class ToolNotFoundError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name!r}")
        self.name = name
