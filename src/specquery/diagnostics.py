"""Per-request diagnostics sink.

Coercion, compilation and result filtering never abort on a bad optional
parameter; they substitute a default and record why. Those notes are
collected here so a caller can return them alongside the response instead of
fishing them out of the process log. Each note is also forwarded to the
emitting module's logger.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import logging


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """A single note recorded while handling a request."""

    level: int
    message: str
    source: str

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level_name, "message": self.message, "source": self.source}


class Diagnostics:
    """Collects warnings and info notes for one request."""

    def __init__(self) -> None:
        self._records: list[Diagnostic] = []

    def warning(self, message: str, *args: object, log: logging.Logger | None = None) -> None:
        self._record(logging.WARNING, message, args, log)

    def info(self, message: str, *args: object, log: logging.Logger | None = None) -> None:
        self._record(logging.INFO, message, args, log)

    def _record(self, level: int, message: str, args: tuple[object, ...], log: logging.Logger | None) -> None:
        target = log or logger
        text = message % args if args else message
        self._records.append(Diagnostic(level=level, message=text, source=target.name))
        target.log(level, text)

    @property
    def records(self) -> tuple[Diagnostic, ...]:
        return tuple(self._records)

    @property
    def warnings(self) -> list[str]:
        """Messages of all warning-level notes, oldest first."""
        return [record.message for record in self._records if record.level >= logging.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        # an empty sink is still a sink
        return True
