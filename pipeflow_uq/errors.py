"""
Error taxonomy for distribution construction and arithmetic.

Every error records which input parameter and which distribution failed, so
the runner can report e.g. "cross_section (uniform): ..." without the caller
having to re-derive context.
"""

from __future__ import annotations

from typing import Optional


class PipeflowError(ValueError):
    """Base class for failures while building or combining distributed values."""

    def __init__(self, message: str, parameter: Optional[str] = None, distribution: Optional[str] = None):
        self.parameter = parameter
        self.distribution = distribution
        self.detail = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        if self.parameter and self.distribution:
            return f"{self.parameter} ({self.distribution}): {message}"
        if self.parameter:
            return f"{self.parameter}: {message}"
        if self.distribution:
            return f"({self.distribution}): {message}"
        return message


class InvalidRangeError(PipeflowError):
    """Uniform bounds with low > high (or non-finite bounds)."""


class InvalidParameterError(PipeflowError):
    """Negative scale, non-positive log-normal mean, bad exponent or ensemble size."""


class DivisionDomainError(PipeflowError):
    """Denominator support contains zero."""


__all__ = ["PipeflowError", "InvalidRangeError", "InvalidParameterError", "DivisionDomainError"]
