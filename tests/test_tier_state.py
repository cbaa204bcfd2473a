import pytest

from dropoff.models import Tier
from dropoff.state_machines import TierState, TierStateException, first_state, next_state


def test_full_relaxation_order():
    state = first_state()
    seen = []
    while state != TierState.DONE:
        seen.append(state.tier)
        state = next_state(state, accumulated=0, min_suggestions=2)
    assert seen == [Tier.STRICT, Tier.RELAXED, Tier.CLOSEST_FALLBACK]


def test_stops_once_enough_candidates():
    assert next_state(TierState.STRICT, accumulated=2, min_suggestions=2) == TierState.DONE
    assert next_state(TierState.RELAXED, accumulated=3, min_suggestions=2) == TierState.DONE
    assert next_state(TierState.RELAXED, accumulated=1, min_suggestions=2) == TierState.CLOSEST_FALLBACK


def test_done_is_terminal():
    with pytest.raises(TierStateException):
        next_state(TierState.DONE, accumulated=0, min_suggestions=2)
    with pytest.raises(TierStateException):
        TierState.DONE.tier
