"""
Matching service: the operations exposed to callers, with caching around
the engine and the wiring of concrete MongoDB / Ollama implementations.
"""
from typing import List, Optional, Sequence

from talent_match.models.models import MatchingCriteria, OwnerType
from talent_match.models.response import (
    BatchMatchResponse, CandidateSimilarity, InvalidationReport, MatchResult,
    NormalizedSkill, PageOfMatches, SeedReport, SkillMatchResult,
)
from talent_match.models.settings import CacheBackendType, MatchingSettings
from talent_match.services.batch import BatchMatcher
from talent_match.services.cache import (
    CacheKey, InMemoryCacheBackend, MatchCache, MongoCacheBackend, candidate_tag, job_tag, operation_tag
)
from talent_match.services.db import create_database
from talent_match.services.embeddings import OllamaEmbeddingProvider
from talent_match.services.interfaces import EmbeddingProvider, TaxonomyStore, VectorIndex
from talent_match.services.matching import MatchingEngine, WeightsInput, resolve_weights
from talent_match.services.repositories import MongoProfileStore, MongoTaxonomyStore, MongoVectorIndex
from talent_match.services.taxonomy import SkillNormalizer, seed_taxonomy
from talent_match.utils.exceptions import NotFoundError, ValidationError
from talent_match.utils.logging_config import get_logger, log_function_call
from talent_match.utils.utils import clamp01

logger = get_logger(__name__)

JOB_EMBEDDING_LABEL = "job_full"
MAX_PAGE_SIZE = 100


class MatchingService:

    def __init__(
        self,
        normalizer: SkillNormalizer,
        engine: MatchingEngine,
        batch: BatchMatcher,
        cache: MatchCache,
        taxonomy: TaxonomyStore,
        vector_index: VectorIndex,
        provider: Optional[EmbeddingProvider] = None,
        settings: Optional[MatchingSettings] = None,
    ):
        self.normalizer = normalizer
        self.engine = engine
        self.batch = batch
        self.cache = cache
        self.taxonomy = taxonomy
        self.vector_index = vector_index
        self.provider = provider
        self.settings = settings or MatchingSettings()

    # -------- skills --------
    async def normalize_skill(self, raw: str) -> NormalizedSkill:
        return await self.normalizer.normalize(raw)

    async def suggest_skills(self, prefix: str, limit: int = 10) -> List[str]:
        return await self.normalizer.suggest(prefix, limit)

    async def bulk_normalize(self, raws: Sequence[str]) -> List[NormalizedSkill]:
        return await self.normalizer.bulk_normalize(raws)

    async def seed_taxonomy(self) -> SeedReport:
        report = await seed_taxonomy(self.taxonomy, self.vector_index, self.provider)
        # earlier misses may now resolve
        await self.cache.invalidate_tags(operation_tag("skill_normalize"), operation_tag("skill_suggestions"))
        return report

    # -------- matching --------
    async def match_candidate_to_job(self, candidate_id: str, job_id: str, weights: WeightsInput = None) -> MatchResult:
        resolved = resolve_weights(weights).normalized()
        key = CacheKey.of(
            "pair_match", candidate_id=candidate_id, job_id=job_id,
            weights=[resolved.skills, resolved.location, resolved.experience, resolved.salary],
        )
        cached = await self.cache.get(key)
        if cached is not None:
            return MatchResult.model_validate(cached)

        result = await self.engine.match_candidate_to_job(candidate_id, job_id, resolved)
        # degraded results reflect a transient state and are recomputed next time
        if not result.breakdown.degraded:
            await self.cache.set(
                key, result.model_dump(mode="json"), self.settings.cache.pair_match_ttl,
                tags=(candidate_tag(candidate_id), job_tag(job_id)),
            )
        return result

    async def match_by_skills(
        self, candidate_skills: Sequence[str], job_skills: Sequence[str], threshold: Optional[float] = None
    ) -> SkillMatchResult:
        return await self.engine.match_by_skills(candidate_skills, job_skills, threshold)

    async def batch_match(
        self,
        candidate_ids: Sequence[str],
        job_ids: Sequence[str],
        criteria: Optional[MatchingCriteria] = None,
        weights: WeightsInput = None,
        min_score: float = 0.0,
        limit: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> BatchMatchResponse:
        results = await self.batch.batch_match(candidate_ids, job_ids, criteria, weights, deadline_seconds)

        computed = [r for r in results if r.computed]
        failed = [r for r in results if not r.computed]
        ranked = sorted(
            (r for r in computed if r.total_score >= min_score),
            key=lambda r: (-r.total_score, r.candidate_id, r.job_id),
        )
        if limit is not None:
            ranked = ranked[:limit]

        return BatchMatchResponse(
            matches=ranked + failed,
            total=len(ranked),
            processed=len(results),
            not_computed=len(failed),
        )

    async def list_job_matches(
        self, job_id: str, page: int = 1, page_size: int = 20, min_similarity: float = 0.0
    ) -> PageOfMatches:
        if page < 1:
            raise ValidationError("page must be >= 1", field="page", value=page)
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}", field="page_size", value=page_size)
        min_similarity = clamp01(min_similarity)

        key = CacheKey.of("job_matches", job_id=job_id, page=page, page_size=page_size, min_similarity=min_similarity)
        cached = await self.cache.get(key)
        if cached is not None:
            return PageOfMatches.model_validate({**cached, "cached": True})

        job_vector = await self.vector_index.get(OwnerType.JOB.value, job_id, label=JOB_EMBEDDING_LABEL)
        if job_vector is None:
            raise NotFoundError(f"No embedding stored for job {job_id}", resource="job_embedding", resource_ids=[job_id])

        nearest = await self.vector_index.nearest(
            OwnerType.CANDIDATE.value, job_vector, k=page * page_size, min_similarity=min_similarity
        )
        start = (page - 1) * page_size
        result = PageOfMatches(
            job_id=job_id,
            page=page,
            page_size=page_size,
            total=len(nearest),
            items=[CandidateSimilarity(candidate_id=c, similarity=s) for c, s in nearest[start:start + page_size]],
        )
        await self.cache.set(
            key, result.model_dump(mode="json"), self.settings.cache.job_matches_ttl, tags=(job_tag(job_id),)
        )
        return result

    # -------- invalidation --------
    async def invalidate_candidate(self, candidate_id: str) -> int:
        # a changed candidate can enter or leave any job listing
        return await self.cache.invalidate_tags(candidate_tag(candidate_id), operation_tag("job_matches"))

    async def invalidate_job(self, job_id: str) -> int:
        return await self.cache.invalidate_tags(job_tag(job_id))

    async def invalidate(self, candidate_id: Optional[str] = None, job_id: Optional[str] = None) -> InvalidationReport:
        report = InvalidationReport()
        if candidate_id:
            report.candidate_entries = await self.invalidate_candidate(candidate_id)
        if job_id:
            report.job_entries = await self.invalidate_job(job_id)
        return report


@log_function_call
def build_matching_service(settings: MatchingSettings, database=None) -> MatchingService:
    """Wire the MongoDB, Ollama and cache implementations."""
    if database is None:
        database = create_database(settings)

    if settings.cache.backend == CacheBackendType.MONGO:
        backend = MongoCacheBackend(database)
    else:
        backend = InMemoryCacheBackend()
    cache = MatchCache(backend)

    taxonomy = MongoTaxonomyStore(database)
    vector_index = MongoVectorIndex(database, dimension=settings.embedding.dimension)
    profiles = MongoProfileStore(database)
    provider = OllamaEmbeddingProvider(settings.embedding)

    normalizer = SkillNormalizer(taxonomy, provider, vector_index, cache, settings)
    engine = MatchingEngine(profiles, normalizer, provider, vector_index, settings)
    batch = BatchMatcher(engine, profiles, settings.batch)

    logger.info(
        f"Matching service ready (cache={settings.cache.backend.value}, "
        f"embeddings={settings.embedding.model_name}@{settings.embedding.base_url})"
    )
    return MatchingService(normalizer, engine, batch, cache, taxonomy, vector_index, provider, settings)
