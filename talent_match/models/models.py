import math
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class OwnerType(str, Enum):
    CANDIDATE = "candidate"
    JOB = "job"
    SKILL = "skill"


# -------- Taxonomy --------
class Skill(BaseModel):
    skill_id: str
    name: str
    category: str = "Other"
    description: Optional[str] = None
    esco_id: Optional[str] = None
    placeholder: bool = False


class SkillAlias(BaseModel):
    alias: str
    skill_id: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class EmbeddingRecord(BaseModel):
    owner_type: OwnerType
    owner_id: str
    label: str
    vector: List[float]


# -------- Profiles (read-only to the engine) --------
class Coordinates(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class Location(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    remote: bool = False
    coordinates: Optional[Coordinates] = None
    timezone: Optional[str] = None
    max_distance_km: Optional[float] = Field(default=None, gt=0.0)

    def is_empty(self) -> bool:
        return not (self.city or self.region or self.country or self.coordinates or self.remote)


class ExperienceBand(BaseModel):
    min_years: Optional[float] = Field(default=None, ge=0.0)
    max_years: Optional[float] = Field(default=None, ge=0.0)


class SalaryRange(BaseModel):
    min: Optional[float] = Field(default=None, ge=0.0)
    max: Optional[float] = Field(default=None, ge=0.0)
    currency: Optional[str] = None


class CandidateProfile(BaseModel):
    candidate_id: str
    skills: List[str] = Field(default_factory=list)
    location: Location = Field(default_factory=Location)
    years_experience: Optional[float] = Field(default=None, ge=0.0)
    salary_expectation: SalaryRange = Field(default_factory=SalaryRange)
    job_type: Optional[str] = None


class JobSkillRequirement(BaseModel):
    name: str
    weight: float = Field(default=1.0, ge=0.0)


class JobProfile(BaseModel):
    job_id: str
    title: str = ""
    required_skills: List[JobSkillRequirement] = Field(default_factory=list)
    location: Location = Field(default_factory=Location)
    experience: ExperienceBand = Field(default_factory=ExperienceBand)
    salary_range: SalaryRange = Field(default_factory=SalaryRange)
    job_type: Optional[str] = None

    @field_validator('required_skills', mode='before')
    @classmethod
    def coerce_plain_skills(cls, v):
        # records may store required skills as bare strings
        if v is None:
            return []
        return [{"name": s} if isinstance(s, str) else s for s in v]


# -------- Weights and criteria --------
WEIGHT_FIELDS: Tuple[str, ...] = ("skills", "location", "experience", "salary")


class MatchWeights(BaseModel):
    skills: float = Field(default=0.5, ge=0.0, allow_inf_nan=False)
    location: float = Field(default=0.2, ge=0.0, allow_inf_nan=False)
    experience: float = Field(default=0.2, ge=0.0, allow_inf_nan=False)
    salary: float = Field(default=0.1, ge=0.0, allow_inf_nan=False)

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> Tuple["MatchWeights", Dict[str, Any]]:
        """Coerce a loosely typed mapping; returns the weights and any corrections made"""
        defaults = cls()
        if not raw:
            return defaults, {}

        values = {}
        corrections = {}
        for name in WEIGHT_FIELDS:
            if name not in raw or raw[name] is None:
                values[name] = getattr(defaults, name)
                continue
            value = raw[name]
            try:
                number = float(value)
            except (TypeError, ValueError):
                corrections[name] = value
                values[name] = 0.0
                continue
            if isinstance(value, bool) or math.isnan(number) or math.isinf(number) or number < 0:
                corrections[name] = value
                number = 0.0
            values[name] = number

        unknown = sorted(set(raw) - set(WEIGHT_FIELDS))
        if unknown:
            corrections["unknown_keys"] = unknown
        return cls(**values), corrections

    def normalized(self) -> "MatchWeights":
        total = self.skills + self.location + self.experience + self.salary
        if total <= 0:
            share = 1.0 / len(WEIGHT_FIELDS)
            return MatchWeights(skills=share, location=share, experience=share, salary=share)
        return MatchWeights(
            skills=self.skills / total,
            location=self.location / total,
            experience=self.experience / total,
            salary=self.salary / total,
        )


class CriteriaLocation(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    remote: Optional[bool] = None
    center: Optional[Coordinates] = None
    max_distance_km: Optional[float] = Field(default=None, gt=0.0, description="Radius around center; candidates without coordinates are excluded")
    timezone: Optional[str] = Field(default=None, description="Candidates must share this timezone group")


class MatchingCriteria(BaseModel):
    skills: List[str] = Field(default_factory=list, description="Skills every candidate must hold")
    location: Optional[CriteriaLocation] = None
    experience: Optional[ExperienceBand] = None
    salary: Optional[SalaryRange] = None
    job_type: Optional[str] = None
