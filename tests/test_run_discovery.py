import csv
import json
from unittest.mock import MagicMock, patch

import pytest

from routing.errors import ProviderUnavailable
from scripts.run_discovery import parse_point, run

from mock_providers import MockDirections, MockGeocoder, straight_route

COORDS = ["--pickup", "30.25,-97.70", "--dest", "30.30,-97.70"]


class MockMapbox(MockDirections):
    """Directions and reverse geocoding from one object, like MapboxClient."""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.geocoder = MockGeocoder()

    def describe(self, point):
        return self.geocoder.describe(point)


@pytest.fixture
def no_places():
    with patch("scripts.run_discovery.PlacesClient", side_effect=ValueError("no credentials")) as places:
        yield places


def test_parse_point():
    assert parse_point("30.2672,-97.7431").lat == pytest.approx(30.2672)
    assert parse_point("Franklin Barbecue") is None
    assert parse_point("30.2672,east") is None


def test_place_lookup_failure_is_reported_as_provider_error(capsys):
    places = MagicMock()
    places.suggest.side_effect = ProviderUnavailable("foursquare down")
    with patch("scripts.run_discovery.MapboxClient"), patch("scripts.run_discovery.PlacesClient", return_value=places):
        code = run(["--pickup", "Franklin Barbecue", "--dest", "30.30,-97.70"])

    assert code == 1
    assert "[PROVIDER] foursquare down" in capsys.readouterr().out


def test_malformed_departure_time_is_invalid_input(capsys, no_places):
    mapbox = MagicMock()
    with patch("scripts.run_discovery.MapboxClient", return_value=mapbox):
        code = run(COORDS + ["--depart", "not-a-date"])

    assert code == 2
    assert "[INVALID]" in capsys.readouterr().out
    mapbox.route.assert_not_called()


def test_bad_policy_file_is_invalid_input(tmp_path, capsys, no_places):
    policy_file = tmp_path / "policy.json"
    policy_file.write_text(json.dumps({"walk_radius": 500}))
    with patch("scripts.run_discovery.MapboxClient"):
        code = run(COORDS + ["--policy", str(policy_file)])

    assert code == 2
    assert "unknown policy keys" in capsys.readouterr().out


def test_place_name_without_credentials_exits(no_places):
    with patch("scripts.run_discovery.MapboxClient"):
        with pytest.raises(SystemExit):
            run(["--pickup", "Franklin Barbecue", "--dest", "30.30,-97.70"])


def test_suggestions_written_to_csv(tmp_path, capsys, no_places):
    output = tmp_path / "drops.csv"
    mapbox = MockMapbox([straight_route()], drive_scale=0.8)
    with patch("scripts.run_discovery.MapboxClient", return_value=mapbox):
        code = run(COORDS + ["--csv", str(output)])

    assert code == 0
    out = capsys.readouterr().out
    assert "Regular A" in out
    assert "[strict]" in out

    with open(output, newline="") as file:
        rows = list(csv.DictReader(file))
    assert len(rows) == 2
    assert all(row["tier"] == "strict" for row in rows)
    assert all(row["address"].endswith("Congress Ave") for row in rows)
