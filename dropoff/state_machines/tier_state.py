"""
Relaxation states for one discovery request:

    STRICT -> RELAXED -> CLOSEST_FALLBACK -> DONE

The engine runs the tier of the current state, then asks `next_state` whether
to stop (enough accumulated candidates, or last tier) or fall through.
"""

from enum import Enum

from ..models import Tier


class TierStateException(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


class TierState(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"
    CLOSEST_FALLBACK = "closest_fallback"
    DONE = "done"

    @property
    def tier(self) -> Tier:
        if self == TierState.DONE:
            raise TierStateException("DONE has no tier to run")
        return Tier(self.value)


_ORDER = (TierState.STRICT, TierState.RELAXED, TierState.CLOSEST_FALLBACK, TierState.DONE)


def first_state() -> TierState:
    return TierState.STRICT


def next_state(state: TierState, accumulated: int, min_suggestions: int) -> TierState:
    """
    Called after the tier of `state` has run and its output was merged.
    Enough candidates, or nothing looser left to try -> DONE.
    """
    if state == TierState.DONE:
        raise TierStateException("Cannot transition out of DONE")

    if accumulated >= min_suggestions:
        return TierState.DONE

    return _ORDER[_ORDER.index(state) + 1]
