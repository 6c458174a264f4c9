from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from talent_match.models.models import MatchingCriteria

# -------- Skills --------
class NormalizeSkillRequest(BaseModel):
    skill: str = Field(min_length=1)


class BulkNormalizeRequest(BaseModel):
    skills: List[str] = Field(min_length=1, max_length=200)


# -------- Matching --------
class CandidateJobMatchRequest(BaseModel):
    candidate_id: str
    job_id: str
    # loosely typed on purpose: bad values are corrected, not rejected
    weights: Optional[Dict[str, Any]] = None


class BatchMatchRequest(BaseModel):
    candidate_ids: List[str] = Field(min_length=1)
    job_ids: List[str] = Field(min_length=1)
    criteria: Optional[MatchingCriteria] = None
    weights: Optional[Dict[str, Any]] = None
    min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    limit: int = Field(default=100, ge=1, le=1000)
    deadline_seconds: Optional[float] = Field(default=None, gt=0.0, le=120.0)


class SkillMatchRequest(BaseModel):
    candidate_skills: List[str]
    job_skills: List[str]
    threshold: float = Field(default=0.75, ge=0.0, le=1.0)


class InvalidateRequest(BaseModel):
    candidate_id: Optional[str] = None
    job_id: Optional[str] = None
