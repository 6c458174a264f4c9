"""
Matching engine configuration
"""
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from talent_match.utils.exceptions import ConfigurationError


class LocationGranularity(str, Enum):
    """Level at which two locations count as the same place"""
    CITY = "city"
    REGION = "region"
    COUNTRY = "country"


class CacheBackendType(str, Enum):
    MEMORY = "memory"
    MONGO = "mongo"


class EmbeddingSettings(BaseModel):
    """Embedding provider configuration"""
    model_name: str = Field(default="nomic-embed-text", description="Embedding model name")
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    dimension: int = Field(default=768, ge=1, description="Embedding dimension")
    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    max_concurrent: int = Field(default=4, ge=1, le=16, description="Maximum in-flight embedding requests")
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per embedding request")
    retry_backoff: float = Field(default=0.3, ge=0.0, le=10.0, description="Base backoff between attempts in seconds")


class ScoringThresholds(BaseModel):
    """Similarity thresholds"""
    semantic_normalize_min: float = Field(default=0.7, ge=0.0, le=1.0, description="Minimum cosine for semantic skill normalization")
    skill_match_min: float = Field(default=0.75, ge=0.0, le=1.0, description="Minimum cosine for a semantic skill match")
    semantic_neighbours: int = Field(default=3, ge=1, le=20, description="Nearest skills fetched during normalization")


class LocationSettings(BaseModel):
    """Location scoring configuration"""
    granularity: LocationGranularity = Field(default=LocationGranularity.CITY)
    region_credit: float = Field(default=0.8, ge=0.0, le=1.0, description="Score for same region, different city")
    country_credit: float = Field(default=0.6, ge=0.0, le=1.0, description="Score for same country, different region")
    default_max_distance_km: float = Field(default=50.0, gt=0.0, description="Commute radius when the job sets none")

    @field_validator('country_credit')
    @classmethod
    def validate_credit_order(cls, v, info):
        region = info.data.get('region_credit')
        if region is not None and v > region:
            raise ValueError('country_credit must not exceed region_credit')
        return v


class ScoringSettings(BaseModel):
    """Experience and salary decay configuration"""
    experience_under_decay_years: float = Field(default=5.0, gt=0.0, description="Years below the band at which the score reaches 0")
    experience_over_decay_years: float = Field(default=10.0, gt=0.0, description="Years above the band at which the score reaches 0")
    experience_under_tolerance_years: float = Field(default=1.0, ge=0.0)
    experience_over_tolerance_years: float = Field(default=2.0, ge=0.0)
    salary_tolerance_ratio: float = Field(default=0.5, gt=0.0, description="Gap above the job max, as a fraction of it, at which the score reaches 0")


class CacheSettings(BaseModel):
    """Cache TTLs in seconds"""
    backend: CacheBackendType = Field(default=CacheBackendType.MEMORY)
    normalize_hit_ttl: int = Field(default=3600, ge=1)
    normalize_semantic_ttl: int = Field(default=1800, ge=1)
    normalize_miss_ttl: int = Field(default=900, ge=1)
    suggestions_ttl: int = Field(default=1800, ge=1)
    job_matches_ttl: int = Field(default=30, ge=1)
    pair_match_ttl: int = Field(default=300, ge=1)

    @model_validator(mode="after")
    def validate_miss_shorter_than_hit(self):
        if self.normalize_miss_ttl > self.normalize_hit_ttl:
            raise ValueError('normalize_miss_ttl must not exceed normalize_hit_ttl')
        return self


class BatchSettings(BaseModel):
    """Batch matching bounds"""
    max_candidates: int = Field(default=100, ge=1, le=1000)
    max_jobs: int = Field(default=50, ge=1, le=1000)
    max_concurrent_pairs: int = Field(default=8, ge=1, le=64)
    deadline_seconds: Optional[float] = Field(default=None, gt=0.0, description="Default overall deadline for a batch")


class MatchingSettings(BaseModel):
    """Complete engine configuration"""
    mongo_details: str = Field(default="mongodb://localhost:27017")
    db_name: str = Field(default="talent_match")
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)
    location: LocationSettings = Field(default_factory=LocationSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    create_placeholders: bool = Field(default=False, description="Register unrecognised skills as placeholders")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> MatchingSettings:
    """Build settings from environment variables (.env is honoured)"""
    load_dotenv()
    try:
        return _settings_from_env()
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e


def _settings_from_env() -> MatchingSettings:
    embedding = EmbeddingSettings(
        model_name=os.getenv("EMBED_MODEL", "nomic-embed-text"),
        base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
        dimension=int(os.getenv("EMBEDDING_DIMENSION", "768")),
        timeout=int(os.getenv("EMBED_TIMEOUT", "30")),
        max_concurrent=int(os.getenv("EMBED_MAX_CONCURRENCY", "4")),
    )
    thresholds = ScoringThresholds(
        semantic_normalize_min=float(os.getenv("SEMANTIC_THRESHOLD", "0.7")),
        skill_match_min=float(os.getenv("SKILL_MATCH_THRESHOLD", "0.75")),
    )
    location = LocationSettings(
        granularity=LocationGranularity(os.getenv("LOCATION_GRANULARITY", "city").lower()),
    )
    cache = CacheSettings(backend=CacheBackendType(os.getenv("CACHE_BACKEND", "memory").lower()))
    batch = BatchSettings(max_concurrent_pairs=int(os.getenv("BATCH_MAX_CONCURRENCY", "8")))

    return MatchingSettings(
        mongo_details=os.getenv("MONGO_DETAILS", "mongodb://localhost:27017"),
        db_name=os.getenv("DB_NAME", "talent_match"),
        embedding=embedding,
        thresholds=thresholds,
        location=location,
        cache=cache,
        batch=batch,
        create_placeholders=_env_bool("CREATE_SKILL_PLACEHOLDERS", False),
    )
