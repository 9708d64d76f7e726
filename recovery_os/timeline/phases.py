"""Recovery phase classification.

Phase boundaries are data: a ``PhaseTable`` is an ordered list of inclusive
day ranges. Protocols for different surgery types can register their own
table in a ``PhaseRegistry``; any day no range covers is ``maintenance``.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from recovery_os.timeline.exceptions import InvalidPhaseTableError
from recovery_os.timeline.models import RecoveryPhase

_PHASE_LABELS: dict[RecoveryPhase, str] = {
    RecoveryPhase.PRE_SURGERY: "Pre-Surgery",
    RecoveryPhase.IMMEDIATE_POST_OP: "Immediate Post-Op",
    RecoveryPhase.EARLY_RECOVERY: "Early Recovery",
    RecoveryPhase.ACTIVE_RECOVERY: "Active Recovery",
    RecoveryPhase.LATE_RECOVERY: "Late Recovery",
    RecoveryPhase.MAINTENANCE: "Maintenance",
}


@dataclass(frozen=True)
class PhaseRange:
    """Inclusive ``[start, end]`` day range; ``None`` leaves that side open."""

    phase: RecoveryPhase
    start: Optional[int]
    end: Optional[int]

    def contains(self, day: int) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


class PhaseTable:
    """Ordered, contiguous, non-overlapping phase ranges."""

    def __init__(self, ranges: Iterable[PhaseRange]):
        self.ranges: tuple[PhaseRange, ...] = tuple(ranges)
        self._validate()

    def _validate(self) -> None:
        for i, r in enumerate(self.ranges):
            if r.start is not None and r.end is not None and r.start > r.end:
                raise InvalidPhaseTableError(f"{r.phase.value}: start {r.start} > end {r.end}")
            if r.start is None and i != 0:
                raise InvalidPhaseTableError(f"{r.phase.value}: only the first range may be open-ended below")
            if r.end is None and i != len(self.ranges) - 1:
                raise InvalidPhaseTableError(f"{r.phase.value}: only the last range may be open-ended above")

        for prev, nxt in zip(self.ranges, self.ranges[1:]):
            if nxt.start != prev.end + 1:
                raise InvalidPhaseTableError(
                    f"{prev.phase.value} ends on day {prev.end} but "
                    f"{nxt.phase.value} starts on day {nxt.start}"
                )

    def phase_for(self, day: int) -> RecoveryPhase:
        """First matching range wins; uncovered days are maintenance."""
        for r in self.ranges:
            if r.contains(day):
                return r.phase
        return RecoveryPhase.MAINTENANCE

    def range_for(self, phase: RecoveryPhase) -> Optional[PhaseRange]:
        return next((r for r in self.ranges if r.phase == phase), None)

    def __repr__(self) -> str:
        return f"PhaseTable({list(self.ranges)!r})"


STANDARD_PHASES = PhaseTable(
    [
        PhaseRange(RecoveryPhase.PRE_SURGERY, None, -1),
        PhaseRange(RecoveryPhase.IMMEDIATE_POST_OP, 0, 7),
        PhaseRange(RecoveryPhase.EARLY_RECOVERY, 8, 30),
        PhaseRange(RecoveryPhase.ACTIVE_RECOVERY, 31, 90),
        PhaseRange(RecoveryPhase.LATE_RECOVERY, 91, 200),
    ]
)

FINE_PHASES = PhaseTable(
    [
        PhaseRange(RecoveryPhase.PRE_SURGERY, None, -1),
        PhaseRange(RecoveryPhase.IMMEDIATE_POST_OP, 0, 3),
        PhaseRange(RecoveryPhase.EARLY_RECOVERY, 4, 30),
        PhaseRange(RecoveryPhase.ACTIVE_RECOVERY, 31, 90),
        PhaseRange(RecoveryPhase.LATE_RECOVERY, 91, 200),
    ]
)

PHASE_TABLES: dict[str, PhaseTable] = {
    "standard": STANDARD_PHASES,
    "fine": FINE_PHASES,
}


class PhaseRegistry:
    """Per-surgery-type phase tables with a shared default."""

    def __init__(self, default: PhaseTable = STANDARD_PHASES):
        self.default = default
        self._tables: dict[str, PhaseTable] = {}

    @classmethod
    def from_names(
        cls, default: str = "standard", overrides: Optional[Mapping[str, str]] = None
    ) -> "PhaseRegistry":
        """Build a registry from named tables, e.g. ``{"TKA": "fine"}``."""
        registry = cls(default=PHASE_TABLES[default])
        for surgery_type, name in (overrides or {}).items():
            registry.register(surgery_type, PHASE_TABLES[name])
        return registry

    def register(self, surgery_type: str, table: PhaseTable) -> None:
        self._tables[surgery_type.lower()] = table

    def table_for(self, surgery_type: Optional[str] = None) -> PhaseTable:
        if surgery_type is None:
            return self.default
        return self._tables.get(surgery_type.lower(), self.default)


def phase_for(day: int, table: Optional[PhaseTable] = None) -> RecoveryPhase:
    """Classify *day* using *table* (standard phases by default)."""
    return (table or STANDARD_PHASES).phase_for(day)


def phase_label(phase: RecoveryPhase) -> str:
    return _PHASE_LABELS[phase]
