import pytest

from talent_match.models.models import Coordinates, ExperienceBand, Location, SalaryRange
from talent_match.models.settings import LocationGranularity, LocationSettings, ScoringSettings
from talent_match.services.scoring import (
    haversine_km, score_experience, score_location, score_salary, timezone_compatible
)

BERLIN = Coordinates(lat=52.52, lng=13.405)
POTSDAM = Coordinates(lat=52.3906, lng=13.0645)
HAMBURG = Coordinates(lat=53.5511, lng=9.9937)


@pytest.fixture
def location_settings():
    return LocationSettings()


@pytest.fixture
def scoring_settings():
    return ScoringSettings()


class TestLocation:

    def test_unconstrained_job(self, location_settings):
        result = score_location(Location(city="Accra"), Location(), location_settings)
        assert result.score == 1.0
        assert result.match

    def test_remote_job(self, location_settings):
        result = score_location(Location(city="Accra"), Location(city="Berlin", remote=True), location_settings)
        assert result.score == 1.0

    def test_within_commute_radius(self, location_settings):
        result = score_location(Location(coordinates=POTSDAM), Location(coordinates=BERLIN), location_settings)

        assert 25 < result.distance_km < 30
        assert result.score == pytest.approx(1 - result.distance_km / 50 * 0.5)
        assert result.match

    def test_job_radius_overrides_default(self, location_settings):
        job = Location(coordinates=BERLIN, max_distance_km=20)
        result = score_location(Location(coordinates=POTSDAM), job, location_settings)
        assert result.score == 0.0
        assert not result.match

    def test_beyond_radius_without_shared_place(self, location_settings):
        result = score_location(Location(coordinates=HAMBURG), Location(coordinates=BERLIN), location_settings)
        assert result.score == 0.0
        assert result.distance_km > 200

    def test_same_city(self, location_settings):
        result = score_location(
            Location(city="berlin", country="Germany"), Location(city="Berlin", country="germany"), location_settings
        )
        assert result.score == 1.0

    def test_same_region_gets_partial_credit(self, location_settings):
        result = score_location(
            Location(city="Munich", region="Bavaria", country="Germany"),
            Location(city="Nuremberg", region="Bavaria", country="Germany"),
            location_settings,
        )
        assert result.score == pytest.approx(0.8)

    def test_same_country_gets_less_credit(self, location_settings):
        result = score_location(
            Location(city="Munich", region="Bavaria", country="Germany"),
            Location(city="Berlin", region="Berlin", country="Germany"),
            location_settings,
        )
        assert result.score == pytest.approx(0.6)

    def test_coarser_granularity_counts_country_as_same_place(self):
        settings = LocationSettings(granularity=LocationGranularity.COUNTRY)
        result = score_location(Location(city="Munich", country="Germany"), Location(city="Berlin", country="Germany"), settings)
        assert result.score == 1.0

    def test_same_city_name_in_different_countries(self, location_settings):
        result = score_location(
            Location(city="Paris", country="France"), Location(city="Paris", country="United States"), location_settings
        )
        assert result.score == 0.0
        assert not result.match

    def test_nearby_coordinates_beat_region_credit(self, location_settings):
        result = score_location(
            Location(region="Brandenburg", coordinates=POTSDAM),
            Location(region="Brandenburg", coordinates=POTSDAM),
            location_settings,
        )
        assert result.score == 1.0

    def test_timezone_reported(self, location_settings):
        result = score_location(
            Location(timezone="America/New_York"), Location(city="NYC", timezone="EST"), location_settings
        )
        assert result.timezone_match is True


class TestTimezone:

    def test_same_group(self):
        assert timezone_compatible("EST", "America/New_York") is True
        assert timezone_compatible("Europe/Paris", "CET") is True

    def test_different_groups(self):
        assert timezone_compatible("PST", "CET") is False

    def test_unknown(self):
        assert timezone_compatible(None, "CET") is None


def test_haversine_is_symmetric():
    assert haversine_km(BERLIN, POTSDAM) == pytest.approx(haversine_km(POTSDAM, BERLIN))
    assert haversine_km(BERLIN, BERLIN) == 0.0


class TestExperience:

    @pytest.mark.parametrize("years,expected_score,expected_match", [
        (4, 1.0, True),
        (2, 0.8, True),
        (0, 0.4, False),
        (8, 0.8, True),
        (11, 0.5, False),
        (30, 0.0, False),
    ])
    def test_band_3_to_6(self, scoring_settings, years, expected_score, expected_match):
        result = score_experience(years, ExperienceBand(min_years=3, max_years=6), scoring_settings)
        assert result.score == pytest.approx(expected_score)
        assert result.match is expected_match

    def test_no_band(self, scoring_settings):
        assert score_experience(None, ExperienceBand(), scoring_settings).score == 1.0

    def test_missing_years_count_as_zero(self, scoring_settings):
        result = score_experience(None, ExperienceBand(min_years=2), scoring_settings)
        assert result.score == pytest.approx(0.6)

    def test_open_ended_band(self, scoring_settings):
        assert score_experience(40, ExperienceBand(min_years=5), scoring_settings).score == 1.0


class TestSalary:

    def test_expectation_within_budget(self, scoring_settings):
        result = score_salary(SalaryRange(min=70000), SalaryRange(max=80000), scoring_settings)
        assert result.score == 1.0
        assert result.match

    def test_over_budget_decays(self, scoring_settings):
        result = score_salary(SalaryRange(min=100000), SalaryRange(max=80000), scoring_settings)
        assert result.score == pytest.approx(0.5)
        assert not result.match

    def test_far_over_budget(self, scoring_settings):
        assert score_salary(SalaryRange(min=200000), SalaryRange(max=80000), scoring_settings).score == 0.0

    def test_max_used_when_min_missing(self, scoring_settings):
        result = score_salary(SalaryRange(max=90000), SalaryRange(max=80000), scoring_settings)
        assert result.score == pytest.approx(0.75)

    def test_missing_sides(self, scoring_settings):
        assert score_salary(SalaryRange(), SalaryRange(max=80000), scoring_settings).score == 1.0
        assert score_salary(SalaryRange(min=90000), SalaryRange(min=50000), scoring_settings).score == 1.0
