"""Collaborator protocols for the alucut-excel analyzer.

Defines the structural-subtyping interface for the injectable logger.  The
protocol is ``@runtime_checkable`` so callers can optionally verify
conformance with ``isinstance`` checks.  A standard ``logging.Logger``
satisfies it out of the box.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class AnalysisLogger(Protocol):
    """Interface for the four-level logger used at every heuristic decision point."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a fine-grained heuristic decision."""
        ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a pipeline milestone."""
        ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a degraded-but-recoverable condition."""
        ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a fatal analysis failure."""
        ...
