"""
Clock -- injectable source of "now" for the fuel ledger.

Responsibility:
    Lot intake times, token issue/expiry and correction audit stamps all
    come from a Clock handed to the service, never from ``datetime.now()``
    inside ledger code.  Tests swap in DeterministicClock to move through
    an override window second by second.

Architecture position:
    Kernel > Domain -- zero I/O apart from SystemClock reading wall time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

# Start of the deterministic timeline used throughout the test suite
DEFAULT_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class Clock(ABC):
    """
    Time source for ledger services.

    Guarantees:
        - ``now()`` is timezone-aware and in UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Manually driven clock.

    Time stands still until ``advance()`` or ``set_time()`` moves it, so
    consecutive intakes share a timestamp unless a test spaces them out.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or DEFAULT_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: int | float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new time."""
        self._current = self._current + timedelta(seconds=seconds)
        return self._current
