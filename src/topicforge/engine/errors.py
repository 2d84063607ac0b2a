"""Fatal error taxonomy for conversion jobs.

Only structural problems stop a job. Everything else is collected as a
diagnostic and returned next to the stage result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence


@dataclass(slots=True)
class StructuralError(Exception):
    """The canonical input tree cannot be segmented."""

    message: str
    path: tuple[int, ...] = ()

    def __str__(self) -> str:
        if not self.path:
            return self.message
        location = "/".join(str(index) for index in self.path)
        return f"{self.message} (path={location})"


@dataclass(slots=True)
class MissingInitialHeading(StructuralError):
    """No heading opens the document and no implicit root topic can be built."""

    message: str = "Document has no heading to open the first topic"


@dataclass(slots=True)
class ConversionFailed(Exception):
    """A job escalated error-severity diagnostics to a failure."""

    message: str
    diagnostics: Sequence[object] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.message} ({len(self.diagnostics)} diagnostics)"
