from .tier_state import TierState, TierStateException, first_state, next_state

__all__ = ["TierState", "TierStateException", "first_state", "next_state"]
