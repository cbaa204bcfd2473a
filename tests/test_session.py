import pytest

from dropoff.fanout import DiscoveryCancelled
from dropoff.models import DiscoveryRequest
from dropoff.policy import DiscoveryPolicy
from dropoff.session import DiscoverySession

from mock_providers import DESTINATION, PICKUP, MockDirections, MockGeocoder, straight_route


@pytest.fixture
def request_400m():
    return DiscoveryRequest(pickup=PICKUP, destination=DESTINATION, walk_radius_m=400.0)


def test_latest_result_is_committed(request_400m):
    directions = MockDirections([straight_route()], drive_scale=0.8)
    with DiscoverySession(directions, DiscoveryPolicy(lookup_addresses=False)) as session:
        result = session.discover(request_400m)

        assert session.latest is result
        assert result.generation == session.generation == 1
        assert result.has_suggestions


def test_superseded_request_is_discarded(request_400m):
    """
    A newer request (simulated by cancel()) starts while the first one is
    measuring points: the first one must not publish anything.
    """
    directions = MockDirections([straight_route()], drive_scale=0.8)
    with DiscoverySession(directions, DiscoveryPolicy(lookup_addresses=False)) as session:
        fired = []

        def supersede():
            if not fired:
                fired.append(True)
                session.cancel()

        directions.on_walk = supersede
        with pytest.raises(DiscoveryCancelled):
            session.discover(request_400m)
        assert session.latest is None

        directions.on_walk = None
        result = session.discover(request_400m)
        assert session.latest is result
        assert result.generation == session.generation > 1


def test_address_cache_survives_requests(request_400m):
    directions = MockDirections([straight_route()], drive_scale=0.8)
    geocoder = MockGeocoder()
    with DiscoverySession(directions, DiscoveryPolicy(), geocoder=geocoder) as session:
        session.discover(request_400m)
        lookups = len(geocoder.calls)
        session.discover(request_400m)

        assert lookups > 0
        assert len(geocoder.calls) == lookups
        assert DESTINATION.key() in session.address_cache
