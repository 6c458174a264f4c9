# models/response.py
from pydantic import BaseModel, Field
from typing import List, Optional

from talent_match.models.models import MatchWeights


class NormalizedSkill(BaseModel):
    normalized: str
    category: str = "Other"
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    alternatives: List[str] = Field(default_factory=list)
    skill_id: Optional[str] = None
    strategy: str = "none"  # exact, alias, semantic, none


class SkillMatch(BaseModel):
    skill: str  # job skill
    matched_skill: str  # best candidate skill
    similarity: float = Field(ge=0.0, le=1.0)
    match_type: str  # canonical, semantic


class SkillMatchResult(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    matches: List[SkillMatch] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    semantic_attempted: bool = False
    degraded: bool = False


class MatchBreakdown(BaseModel):
    matched_skills: List[SkillMatch] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    location_match: bool = False
    experience_match: bool = False
    salary_match: bool = False
    timezone_match: Optional[bool] = None
    distance_km: Optional[float] = None
    semantic_attempted: bool = False
    degraded: bool = False


class MatchResult(BaseModel):
    candidate_id: str
    job_id: str
    total_score: float = Field(default=0.0, ge=0.0, le=1.0)
    skill_score: float = Field(default=0.0, ge=0.0, le=1.0)
    location_score: float = Field(default=0.0, ge=0.0, le=1.0)
    experience_score: float = Field(default=0.0, ge=0.0, le=1.0)
    salary_score: float = Field(default=0.0, ge=0.0, le=1.0)
    breakdown: MatchBreakdown = Field(default_factory=MatchBreakdown)
    weights: Optional[MatchWeights] = None
    computed: bool = True
    error: Optional[str] = None


class BatchMatchResponse(BaseModel):
    matches: List[MatchResult]
    total: int
    processed: int
    not_computed: int = 0


class CandidateSimilarity(BaseModel):
    candidate_id: str
    similarity: float


class PageOfMatches(BaseModel):
    job_id: str
    page: int
    page_size: int
    total: int
    items: List[CandidateSimilarity] = Field(default_factory=list)
    cached: bool = False


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class SeedReport(BaseModel):
    skills: int
    aliases: int
    embeddings: int


class InvalidationReport(BaseModel):
    candidate_entries: int = 0
    job_entries: int = 0
