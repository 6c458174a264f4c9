"""Location, experience and salary signals. Pure functions of the two profiles."""
import math
from dataclasses import dataclass
from typing import Optional

from talent_match.models.models import Coordinates, ExperienceBand, Location, SalaryRange
from talent_match.models.settings import LocationGranularity, LocationSettings, ScoringSettings

EARTH_RADIUS_KM = 6371.0

LEVELS = ("city", "region", "country")

TIMEZONE_GROUPS = {
    "UTC": {"UTC", "GMT", "Etc/UTC", "Europe/London"},
    "EST": {"EST", "EDT", "America/New_York", "America/Toronto"},
    "CST": {"CST", "CDT", "America/Chicago"},
    "PST": {"PST", "PDT", "America/Los_Angeles", "America/Vancouver"},
    "CET": {"CET", "CEST", "Europe/Berlin", "Europe/Paris", "Europe/Madrid", "Europe/Amsterdam"},
    "IST": {"IST", "Asia/Kolkata"},
    "JST": {"JST", "Asia/Tokyo"},
}


@dataclass
class SignalScore:
    score: float
    match: bool
    distance_km: Optional[float] = None
    timezone_match: Optional[bool] = None


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def timezone_compatible(a: Optional[str], b: Optional[str]) -> Optional[bool]:
    """None when either side is unknown."""
    if not a or not b:
        return None
    if a.strip().lower() == b.strip().lower():
        return True
    for zones in TIMEZONE_GROUPS.values():
        if a in zones and b in zones:
            return True
    return False


def _same(a: Optional[str], b: Optional[str]) -> Optional[bool]:
    if not a or not b:
        return None
    return a.strip().casefold() == b.strip().casefold()


def _level_score(candidate: Location, job: Location, settings: LocationSettings) -> float:
    granularity = LEVELS.index(LocationGranularity(settings.granularity).value)
    credits = {1: settings.region_credit, 2: settings.country_credit}

    for i, level in enumerate(LEVELS):
        if not _same(getattr(candidate, level), getattr(job, level)):
            continue
        # "Paris, FR" and "Paris, US" share a city but not a place
        if any(_same(getattr(candidate, coarser), getattr(job, coarser)) is False for coarser in LEVELS[i + 1:]):
            continue
        return 1.0 if i <= granularity else credits[i]
    return 0.0


def score_location(candidate: Location, job: Location, settings: LocationSettings) -> SignalScore:
    timezone_match = timezone_compatible(candidate.timezone, job.timezone)

    if job.is_empty() or job.remote:
        return SignalScore(1.0, True, timezone_match=timezone_match)

    distance = None
    distance_score = 0.0
    if candidate.coordinates is not None and job.coordinates is not None:
        distance = haversine_km(candidate.coordinates, job.coordinates)
        max_distance = job.max_distance_km or settings.default_max_distance_km
        if distance <= max_distance:
            distance_score = max(0.5, 1.0 - (distance / max_distance) * 0.5)

    score = max(distance_score, _level_score(candidate, job, settings))
    return SignalScore(score, score > 0, distance_km=distance, timezone_match=timezone_match)


def score_experience(years: Optional[float], band: ExperienceBand, settings: ScoringSettings) -> SignalScore:
    if band.min_years is None and band.max_years is None:
        return SignalScore(1.0, True)

    years = years or 0.0
    if band.min_years is not None and years < band.min_years:
        gap = band.min_years - years
        score = max(0.0, 1.0 - gap / settings.experience_under_decay_years)
        return SignalScore(score, gap <= settings.experience_under_tolerance_years)
    if band.max_years is not None and years > band.max_years:
        excess = years - band.max_years
        score = max(0.0, 1.0 - excess / settings.experience_over_decay_years)
        return SignalScore(score, excess <= settings.experience_over_tolerance_years)
    return SignalScore(1.0, True)


def salary_expectation(salary: SalaryRange) -> Optional[float]:
    return salary.min if salary.min is not None else salary.max


def score_salary(candidate: SalaryRange, job: SalaryRange, settings: ScoringSettings) -> SignalScore:
    expectation = salary_expectation(candidate)
    if expectation is None or job.max is None:
        return SignalScore(1.0, True)

    gap = expectation - job.max
    if gap <= 0:
        return SignalScore(1.0, True)
    if job.max <= 0:
        return SignalScore(0.0, False)
    return SignalScore(max(0.0, 1.0 - gap / (job.max * settings.salary_tolerance_ratio)), False)
