"""
Purpose: Package entry + stable exports.

Drop-off discovery package.

Public API:
- Entry points: discover, DiscoverySession
- Domain models: DiscoveryRequest, DiscoveryResult, Candidate, Tier
- Configuration: DiscoveryPolicy, TierPolicy, default_policy, lenient_policy, policy_from_dict
- Concurrency: BoundedFanout, CancellationToken, DiscoveryCancelled

Should not contain business logic.
"""
from .engine import discover
from .fanout import BoundedFanout, CancellationToken, DiscoveryCancelled
from .models import Candidate, DiscoveryRequest, DiscoveryResult, Tier
from .policy import ConfigurationInvalid, DiscoveryPolicy, TierPolicy, default_policy, lenient_policy, policy_from_dict
from .session import DiscoverySession

__all__ = [
    "discover",
    "DiscoverySession",
    "BoundedFanout",
    "CancellationToken",
    "DiscoveryCancelled",
    "Candidate",
    "DiscoveryRequest",
    "DiscoveryResult",
    "Tier",
    "ConfigurationInvalid",
    "DiscoveryPolicy",
    "TierPolicy",
    "default_policy",
    "lenient_policy",
    "policy_from_dict",
]
