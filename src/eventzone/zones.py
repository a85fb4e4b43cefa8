"""IANA zone loading and event zone resolution.

Resolution walks an ordered list of tiers and stops at the first tier that
makes a decision:

1. the caller-supplied override (command flag or configured default);
2. the zone embedded in the event's own boundaries (start, then end).

A tier that has nothing to say returns ``None`` and the next tier runs.  An
override that fails to load is treated as absent.  An embedded zone that fails
to load ends resolution with the unresolved zone; later embedded candidates
are not consulted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedZone:
    """The zone chosen for one event.

    ``name`` is empty and ``zone`` is ``None`` when nothing could be resolved;
    instants then keep their own offset and dates stay zone-agnostic.
    """

    name: str = ""
    zone: ZoneInfo | None = None

    @property
    def resolved(self) -> bool:
        return self.zone is not None


UNRESOLVED = ResolvedZone()

ZoneTier = Callable[[], ResolvedZone | None]


def load_zone(name: str) -> ZoneInfo | None:
    """Load *name* from the IANA database, returning ``None`` when it is unknown."""
    normalized = name.strip()
    if not normalized:
        return None
    try:
        return ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


class ZoneCache:
    """Read-through zone cache for one batch operation.

    Misses are cached as well as hits, so a name that failed to load keeps
    failing for the lifetime of the cache.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ZoneInfo | None] = {}

    def load(self, name: str) -> ZoneInfo | None:
        normalized = name.strip()
        if not normalized:
            return None
        if normalized not in self._entries:
            self._entries[normalized] = load_zone(normalized)
        return self._entries[normalized]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _loader(zones: ZoneCache | None) -> Callable[[str], ZoneInfo | None]:
    return zones.load if zones is not None else load_zone


def first_zone_name(candidates: Iterable[str | None]) -> str:
    """Return the first non-empty, trimmed candidate, or ``""``."""
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


def _override_tier(override: str, load: Callable[[str], ZoneInfo | None]) -> ZoneTier:
    def tier() -> ResolvedZone | None:
        name = override.strip() if isinstance(override, str) else ""
        if not name:
            return None
        zone = load(name)
        if zone is None:
            logger.debug("Ignoring unknown override timezone %r", name)
            return None
        return ResolvedZone(name=name, zone=zone)

    return tier


def _embedded_tier(
    embedded_zones: Iterable[str | None],
    load: Callable[[str], ZoneInfo | None],
) -> ZoneTier:
    def tier() -> ResolvedZone | None:
        name = first_zone_name(embedded_zones)
        if not name:
            return None
        zone = load(name)
        if zone is None:
            # First present embedded zone decides, even when it is invalid.
            logger.debug("Event timezone %r is not a known IANA zone", name)
            return UNRESOLVED
        return ResolvedZone(name=name, zone=zone)

    return tier


def reduce_tiers(tiers: Iterable[ZoneTier]) -> ResolvedZone:
    """Evaluate *tiers* in order and return the first decision."""
    for tier in tiers:
        decision = tier()
        if decision is not None:
            return decision
    return UNRESOLVED


def resolve_zone(
    override: str,
    embedded_zones: Iterable[str | None],
    *,
    zones: ZoneCache | None = None,
) -> ResolvedZone:
    """Pick the single zone used to localize both boundaries of an event."""
    load = _loader(zones)
    return reduce_tiers(
        [
            _override_tier(override, load),
            _embedded_tier(list(embedded_zones), load),
        ]
    )
