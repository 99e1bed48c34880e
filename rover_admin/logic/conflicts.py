"""Marktkonflikte bei der Zuweisung eines Fragebogens.

Ein Markt, der schon einem anderen Fragebogen zugewiesen ist, wird nie stillschweigend
doppelt belegt: der Konflikt muss ausdrücklich mit ``override`` (Markt aus dem alten
Fragebogen entfernen) oder ``remove`` (Markt nicht in den neuen übernehmen) gelöst werden.
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..errors import ConflictError, ValidationError
from .status import is_time_limited

OVERRIDE = "override"
REMOVE = "remove"
RESOLUTIONS = (OVERRIDE, REMOVE)


@dataclass
class Assignment:
    """Bestehende Zuweisung: ein Fragebogen mit seinen Märkten."""

    fragebogen_id: str
    name: str
    market_ids: Set[str]
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass
class MarketConflict:
    market_id: str
    existing_fragebogen_id: str
    existing_fragebogen_name: str
    is_time_limited: bool
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    # alle anderen Fragebögen mit diesem Markt, der erste wird angezeigt
    holders: List[str] = field(default_factory=list)
    resolution: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class Resolution:
    market_ids: List[str]
    # fragebogen_id -> Märkte, die dort entfernt werden
    release: Dict[str, Set[str]]


def detect_conflicts(
    market_ids: Sequence[str],
    assignments: Iterable[Assignment],
    editing_id: Optional[str] = None,
) -> List[MarketConflict]:
    """Genau ein Eintrag pro Markt, der bereits in einem anderen Fragebogen steckt."""
    others = [a for a in assignments if a.fragebogen_id != editing_id]
    conflicts = []
    seen = set()
    for market_id in market_ids:
        if market_id in seen:
            continue
        seen.add(market_id)
        holders = [a for a in others if market_id in a.market_ids]
        if not holders:
            continue
        first = holders[0]
        conflicts.append(MarketConflict(
            market_id=market_id,
            existing_fragebogen_id=first.fragebogen_id,
            existing_fragebogen_name=first.name,
            is_time_limited=is_time_limited(first.start_date),
            start_date=first.start_date.isoformat() if first.start_date else None,
            end_date=first.end_date.isoformat() if first.end_date else None,
            holders=[a.fragebogen_id for a in holders],
        ))
    return conflicts


def resolve_conflicts(
    market_ids: Sequence[str],
    conflicts: Sequence[MarketConflict],
    resolutions: Optional[Mapping[str, str]],
) -> Resolution:
    """Wendet die Entscheidungen an; ohne Entscheidung für jeden Konflikt wird nicht gespeichert."""
    resolutions = resolutions or {}
    invalid = {m: r for m, r in resolutions.items() if r not in RESOLUTIONS}
    if invalid:
        raise ValidationError(f"invalid conflict resolution(s): {invalid}")

    unresolved = [c for c in conflicts if c.market_id not in resolutions]
    if unresolved:
        for c in conflicts:
            c.resolution = resolutions.get(c.market_id)
        raise ConflictError(
            f"{len(unresolved)} market conflict(s) need a resolution",
            {"conflicts": [c.to_dict() for c in conflicts]},
        )

    by_market = {c.market_id: c for c in conflicts}
    keep: List[str] = []
    release: Dict[str, Set[str]] = {}
    for market_id in dict.fromkeys(market_ids):
        conflict = by_market.get(market_id)
        if conflict is None:
            keep.append(market_id)
            continue
        conflict.resolution = resolutions[market_id]
        if conflict.resolution == OVERRIDE:
            keep.append(market_id)
            for holder in conflict.holders:
                release.setdefault(holder, set()).add(market_id)
    return Resolution(market_ids=keep, release=release)
