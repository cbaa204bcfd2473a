#Purpose: Long-lived discovery session for one user (e.g. one map screen).
#Every new request bumps the generation; only the newest request may publish.
#A superseded request stops at its next provider call / fan-out boundary
#and raises DiscoveryCancelled instead of returning stale suggestions.
#Shares one BoundedFanout and one address cache across requests.

import logging
import threading
from typing import Dict, Optional, Tuple

from .engine import discover
from .fanout import BoundedFanout, CancellationToken, DiscoveryCancelled
from .models import DiscoveryRequest, DiscoveryResult
from .policy import DiscoveryPolicy, default_policy

logger = logging.getLogger(__name__)


class DiscoverySession:
    def __init__(self, directions, policy: Optional[DiscoveryPolicy] = None, geocoder=None):
        self.directions = directions
        self.policy = policy or default_policy()
        self.policy.validate()
        self.geocoder = geocoder

        self.latest: Optional[DiscoveryResult] = None
        self.address_cache: Dict[Tuple[float, float], str] = {}

        self._lock = threading.Lock()
        self._generation = 0
        self._pool = BoundedFanout(self.policy.max_concurrency)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def discover(self, request: DiscoveryRequest) -> DiscoveryResult:
        """
        Run discovery for `request`, superseding any request still in flight.
        Raises DiscoveryCancelled when a newer request started meanwhile.
        """
        token = self._next_token()
        result = discover(
            request,
            self.policy,
            self.directions,
            self.geocoder,
            token=token,
            pool=self._pool,
            address_cache=self.address_cache,
        )

        with self._lock:
            if token.generation != self._generation:
                logger.info("discarding stale result of generation %s", token.generation)
                raise DiscoveryCancelled(f"discovery generation {token.generation} was superseded")
            self.latest = result
        return result

    def cancel(self) -> None:
        """Invalidate whatever is in flight without starting anything new."""
        with self._lock:
            self._generation += 1

    def close(self) -> None:
        self.cancel()
        self._pool.shutdown()

    def __enter__(self) -> "DiscoverySession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _next_token(self) -> CancellationToken:
        with self._lock:
            self._generation += 1
            generation = self._generation
        return CancellationToken(generation, current=lambda: self.generation)
