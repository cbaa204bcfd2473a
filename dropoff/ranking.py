"""
Purpose: Order, deduplicate and cap candidate drop-offs.
What it does:

Ordering (a pure function of the evaluated data, never of arrival order):

- savings tiers (STRICT / RELAXED) first:
    descending savings_usd,
    then ascending distance_weight * drive meters + duration_weight * drive seconds,
    then coordinates (total order)

- CLOSEST_FALLBACK after them, by ascending radial distance to the destination

Dedup: rounded-coordinate key, first (best ranked) occurrence survives.
Caps: per source route within a tier, and an overall maximum.

Rule: Ranking chooses what to show; it does not call providers.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from .models import Candidate
from .policy import DiscoveryPolicy


def rank_key(candidate: Candidate, policy: DiscoveryPolicy) -> Tuple:
    drive_cost = (
        policy.distance_weight * candidate.drive.distance_m
        + policy.duration_weight * candidate.drive.duration_s
    )
    coords = candidate.drop_point.key(policy.dedup_precision)

    if candidate.tier.is_fallback:
        return (1, candidate.radial_m, drive_cost, coords)
    return (0, -candidate.savings_usd, drive_cost, coords)


def sort_candidates(candidates: Iterable[Candidate], policy: DiscoveryPolicy) -> List[Candidate]:
    return sorted(candidates, key=lambda c: rank_key(c, policy))


def cap_per_route(candidates: Sequence[Candidate], cap: int) -> List[Candidate]:
    """
    Keep the first `cap` candidates of every source route (input order preserved),
    so one long route cannot take over the suggestion list.
    """
    per_route: Dict[str, int] = {}
    capped: List[Candidate] = []
    for c in candidates:
        seen = per_route.get(c.source_route_label, 0)
        if seen >= cap:
            continue
        per_route[c.source_route_label] = seen + 1
        capped.append(c)
    return capped


def dedupe(candidates: Sequence[Candidate], precision: int = 6) -> List[Candidate]:
    seen = set()
    unique: List[Candidate] = []
    for c in candidates:
        key = c.drop_point.key(precision)
        if key in seen:
            continue
        seen.add(key)
        unique.append(c)
    return unique


def dedupe_and_cap(candidates: Iterable[Candidate], policy: DiscoveryPolicy) -> List[Candidate]:
    """
    Final ordering: sort, collapse duplicates (best ranked wins), truncate
    to max_suggestions regardless of the tier mix.
    """
    ordered = sort_candidates(candidates, policy)
    return dedupe(ordered, policy.dedup_precision)[: policy.max_suggestions]
