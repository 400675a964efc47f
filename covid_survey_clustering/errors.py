"""
Error types raised by the sequence clustering engine.
"""

from typing import Optional


class SequenceClusteringError(Exception):
    """Base error for pipeline failures. Carries the stage that raised it."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def with_stage(self, stage: str) -> "SequenceClusteringError":
        """Tag the error with a pipeline stage unless one is already set."""
        if self.stage is None:
            self.stage = stage
        return self

    def __str__(self):
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ConfigurationError(SequenceClusteringError):
    """Raised for invalid feature allow-lists, cluster counts or costs."""


class DataIntegrityError(SequenceClusteringError):
    """Raised when an artifact violates a shape, symmetry or completeness invariant."""


class DegenerateInputError(SequenceClusteringError):
    """Raised when the input cannot support a meaningful clustering."""
