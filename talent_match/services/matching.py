import asyncio
from typing import Any, Dict, List, Optional, Sequence, Union

from talent_match.models.models import (
    CandidateProfile, JobProfile, JobSkillRequirement, MatchWeights, OwnerType
)
from talent_match.models.response import MatchBreakdown, MatchResult, SkillMatch, SkillMatchResult
from talent_match.models.settings import MatchingSettings
from talent_match.services.embeddings import MemoizedEmbeddings
from talent_match.services.interfaces import EmbeddingProvider, ProfileStore, VectorIndex
from talent_match.services.scoring import score_experience, score_location, score_salary
from talent_match.services.taxonomy import SkillNormalizer
from talent_match.utils.exceptions import InvalidWeightsError, NotFoundError, ProviderUnavailableError
from talent_match.utils.logging_config import get_logger
from talent_match.utils.utils import clamp01, cosine_similarity

logger = get_logger(__name__)

CANONICAL = "canonical"
SEMANTIC = "semantic"

WeightsInput = Union[None, MatchWeights, Dict[str, Any]]


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    total = sum(weights)
    if total <= 0:
        return sum(values) / len(values) if values else 0.0
    return sum(v * w for v, w in zip(values, weights)) / total


def resolve_weights(weights: WeightsInput) -> MatchWeights:
    """Accept typed or loosely typed weights; bad entries become 0 and are logged."""
    if weights is None:
        return MatchWeights()
    if isinstance(weights, MatchWeights):
        return weights
    resolved, corrections = MatchWeights.from_raw(weights)
    if corrections:
        diagnostic = InvalidWeightsError("Invalid match weights coerced to 0", corrections=corrections)
        logger.warning(f"{diagnostic.message}: {diagnostic.to_dict()}")
    return resolved


class MatchingEngine:
    """
    Hybrid candidate/job scorer.

    Skills are matched through the taxonomy first (identical canonical names
    score 1.0) and then by cosine similarity of skill-name embeddings. When
    embeddings are missing or the provider is down the taxonomy tier alone
    decides and the result is flagged as degraded.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        normalizer: SkillNormalizer,
        provider: Optional[EmbeddingProvider] = None,
        vector_index: Optional[VectorIndex] = None,
        settings: Optional[MatchingSettings] = None,
    ):
        self.profiles = profiles
        self.normalizer = normalizer
        self.provider = provider
        self.vector_index = vector_index
        self.settings = settings or MatchingSettings()

    async def match_candidate_to_job(self, candidate_id: str, job_id: str, weights: WeightsInput = None) -> MatchResult:
        candidate = await self.profiles.get_candidate(candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found", resource="candidate", resource_ids=[candidate_id])
        job = await self.profiles.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found", resource="job", resource_ids=[job_id])
        return await self.score_pair(candidate, job, resolve_weights(weights))

    async def match_by_skills(
        self, candidate_skills: Sequence[str], job_skills: Sequence[str], threshold: Optional[float] = None
    ) -> SkillMatchResult:
        if threshold is None:
            threshold = self.settings.thresholds.skill_match_min
        requirements = [JobSkillRequirement(name=s) for s in job_skills if s.strip()]
        return await self._score_skills(
            candidate_skills, requirements, threshold,
            use_semantic=self.provider is not None, empty_score=0.0,
        )

    async def score_pair(self, candidate: CandidateProfile, job: JobProfile, weights: MatchWeights) -> MatchResult:
        """Score one already-loaded pair; shared by single and batch matching."""
        semantic = await self._has_embeddings(candidate.candidate_id, job.job_id)
        skills = await self._score_skills(
            candidate.skills, job.required_skills, self.settings.thresholds.skill_match_min,
            use_semantic=semantic, empty_score=1.0,
        )
        location = score_location(candidate.location, job.location, self.settings.location)
        experience = score_experience(candidate.years_experience, job.experience, self.settings.scoring)
        salary = score_salary(candidate.salary_expectation, job.salary_range, self.settings.scoring)

        w = weights.normalized()
        total = (
            w.skills * skills.score
            + w.location * location.score
            + w.experience * experience.score
            + w.salary * salary.score
        )

        result = MatchResult(
            candidate_id=candidate.candidate_id,
            job_id=job.job_id,
            total_score=clamp01(total),
            skill_score=clamp01(skills.score),
            location_score=clamp01(location.score),
            experience_score=clamp01(experience.score),
            salary_score=clamp01(salary.score),
            breakdown=MatchBreakdown(
                matched_skills=skills.matches,
                missing_skills=skills.missing_skills,
                location_match=location.match,
                experience_match=experience.match,
                salary_match=salary.match,
                timezone_match=location.timezone_match,
                distance_km=location.distance_km,
                semantic_attempted=skills.semantic_attempted,
                degraded=skills.degraded,
            ),
            weights=w,
        )
        logger.debug(
            f"Scored {candidate.candidate_id} x {job.job_id}: total={result.total_score:.3f} "
            f"skills={result.skill_score:.3f} degraded={skills.degraded}"
        )
        return result

    async def _has_embeddings(self, candidate_id: str, job_id: str) -> bool:
        if self.provider is None or self.vector_index is None:
            return False
        try:
            candidate_vec = await self.vector_index.get(OwnerType.CANDIDATE.value, candidate_id)
            job_vec = await self.vector_index.get(OwnerType.JOB.value, job_id)
        except ProviderUnavailableError as e:
            logger.warning(f"Vector index unavailable, using taxonomy tier only: {e.message}")
            return False
        return candidate_vec is not None and job_vec is not None

    async def canonicalize(self, texts: Sequence[str]) -> Dict[str, str]:
        unique = list(dict.fromkeys(texts))
        resolved = await asyncio.gather(*(self.normalizer.canonical_name(t) for t in unique))
        return {t: (r.normalized if r is not None else t.strip()) for t, r in zip(unique, resolved)}

    async def _score_skills(
        self,
        candidate_skills: Sequence[str],
        requirements: Sequence[JobSkillRequirement],
        threshold: float,
        use_semantic: bool,
        empty_score: float,
    ) -> SkillMatchResult:
        candidate_skills = [s for s in candidate_skills if s.strip()]
        if not requirements:
            return SkillMatchResult(score=empty_score, degraded=not use_semantic)

        canon = await self.canonicalize([*candidate_skills, *(r.name for r in requirements)])
        held = {}
        for skill in candidate_skills:
            held.setdefault(canon[skill].casefold(), skill)

        similarities = [0.0] * len(requirements)
        matches: List[Optional[SkillMatch]] = [None] * len(requirements)
        unmatched = []
        for i, req in enumerate(requirements):
            skill = held.get(canon[req.name].casefold())
            if skill is not None:
                similarities[i] = 1.0
                matches[i] = SkillMatch(skill=req.name, matched_skill=skill, similarity=1.0, match_type=CANONICAL)
            else:
                unmatched.append(i)

        semantic_attempted = False
        degraded = not use_semantic
        if unmatched and candidate_skills and use_semantic:
            semantic_attempted = True
            try:
                best = await self._semantic_best(
                    [canon[requirements[i].name] for i in unmatched],
                    [canon[s] for s in candidate_skills],
                )
            except ProviderUnavailableError as e:
                logger.warning(f"Embedding provider unavailable, using taxonomy tier only: {e.message}")
                degraded = True
            else:
                for i, (j, similarity) in zip(unmatched, best):
                    if similarity >= threshold:
                        similarities[i] = similarity
                        matches[i] = SkillMatch(
                            skill=requirements[i].name,
                            matched_skill=candidate_skills[j],
                            similarity=similarity,
                            match_type=SEMANTIC,
                        )

        score = weighted_mean(similarities, [r.weight for r in requirements])
        return SkillMatchResult(
            score=clamp01(score),
            matches=[m for m in matches if m is not None],
            missing_skills=[r.name for r, m in zip(requirements, matches) if m is None],
            semantic_attempted=semantic_attempted,
            degraded=degraded,
        )

    async def _semantic_best(self, wanted: Sequence[str], held: Sequence[str]) -> List[tuple]:
        """For each wanted skill, (index into held, similarity) of its closest held skill."""
        memo = MemoizedEmbeddings(self.provider)
        texts = list(dict.fromkeys(t.strip().lower() for t in [*wanted, *held]))
        await asyncio.gather(*(memo.get(t) for t in texts))

        held_vectors = [await memo.get(h) for h in held]
        best = []
        for text in wanted:
            vector = await memo.get(text)
            sims = [clamp01(cosine_similarity(vector, h)) for h in held_vectors]
            j = max(range(len(sims)), key=lambda k: sims[k])
            best.append((j, sims[j]))
        return best
