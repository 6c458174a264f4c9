"""Cross-product matching of candidates against jobs."""
import asyncio
from typing import List, Optional, Sequence

from talent_match.models.models import CandidateProfile, CriteriaLocation, JobProfile, MatchingCriteria, MatchWeights
from talent_match.models.response import MatchResult
from talent_match.models.settings import BatchSettings
from talent_match.services.interfaces import ProfileStore
from talent_match.services.matching import MatchingEngine, WeightsInput, resolve_weights
from talent_match.services.scoring import haversine_km, salary_expectation, timezone_compatible
from talent_match.utils.exceptions import NotFoundError, ValidationError
from talent_match.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)

DEADLINE_EXCEEDED = "deadline_exceeded"


def _eq(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().casefold() == b.strip().casefold()


def _within(value: Optional[float], low: Optional[float], high: Optional[float]) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    return (low is None or value >= low) and (high is None or value <= high)


def _within_radius(candidate: CandidateProfile, loc: CriteriaLocation) -> bool:
    if loc.max_distance_km is None or loc.center is None:
        return True
    coords = candidate.location.coordinates
    if coords is None:
        return False
    return haversine_km(loc.center, coords) <= loc.max_distance_km


class BatchMatcher:
    """Scores every surviving (candidate, job) pair with bounded concurrency."""

    def __init__(
        self,
        engine: MatchingEngine,
        profiles: ProfileStore,
        settings: Optional[BatchSettings] = None,
        max_candidates: Optional[int] = None,
        max_jobs: Optional[int] = None,
    ):
        self.engine = engine
        self.profiles = profiles
        self.settings = settings or BatchSettings()
        self.max_candidates = max_candidates or self.settings.max_candidates
        self.max_jobs = max_jobs or self.settings.max_jobs

    async def batch_match(
        self,
        candidate_ids: Sequence[str],
        job_ids: Sequence[str],
        criteria: Optional[MatchingCriteria] = None,
        weights: WeightsInput = None,
        deadline_seconds: Optional[float] = None,
    ) -> List[MatchResult]:
        candidate_ids = list(dict.fromkeys(candidate_ids))
        job_ids = list(dict.fromkeys(job_ids))
        if len(candidate_ids) > self.max_candidates:
            raise ValidationError(
                f"Too many candidates: {len(candidate_ids)} > {self.max_candidates}",
                field="candidate_ids", value=len(candidate_ids),
            )
        if len(job_ids) > self.max_jobs:
            raise ValidationError(
                f"Too many jobs: {len(job_ids)} > {self.max_jobs}",
                field="job_ids", value=len(job_ids),
            )

        resolved = resolve_weights(weights)
        candidates = await self.profiles.get_candidates(candidate_ids)
        jobs = await self.profiles.get_jobs(job_ids)
        missing = {
            "candidates": [c for c in candidate_ids if c not in candidates],
            "jobs": [j for j in job_ids if j not in jobs],
        }
        if missing["candidates"] or missing["jobs"]:
            raise NotFoundError("Unknown candidate or job ids", resource="profile", resource_ids=missing)

        selected_candidates = [candidates[c] for c in candidate_ids]
        selected_jobs = [jobs[j] for j in job_ids]
        if criteria is not None:
            selected_candidates = await self._filter_candidates(selected_candidates, criteria)
            selected_jobs = self._filter_jobs(selected_jobs, criteria)

        pairs = [(c, j) for c in selected_candidates for j in selected_jobs]
        deadline = deadline_seconds or self.settings.deadline_seconds
        with PerformanceMonitor(f"batch_match[{len(pairs)} pairs]", logger):
            results = await self._run_pairs(pairs, resolved, deadline)

        failed = sum(1 for r in results if not r.computed)
        logger.info(
            f"Batch matched {len(selected_candidates)}/{len(candidate_ids)} candidates x "
            f"{len(selected_jobs)}/{len(job_ids)} jobs, {failed} not computed"
        )
        return results

    async def _run_pairs(self, pairs, weights: MatchWeights, deadline: Optional[float]) -> List[MatchResult]:
        if not pairs:
            return []
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_pairs)
        tasks = [asyncio.create_task(self._score(c, j, weights, semaphore)) for c, j in pairs]
        done, pending = await asyncio.wait(tasks, timeout=deadline)

        if pending:
            logger.warning(f"Batch deadline of {deadline}s exceeded, cancelling {len(pending)} pairs")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results = []
        for (candidate, job), task in zip(pairs, tasks):
            if task in done:
                results.append(task.result())
            else:
                results.append(MatchResult(
                    candidate_id=candidate.candidate_id, job_id=job.job_id,
                    computed=False, error=DEADLINE_EXCEEDED,
                ))
        return results

    async def _score(self, candidate: CandidateProfile, job: JobProfile, weights: MatchWeights, semaphore) -> MatchResult:
        async with semaphore:
            try:
                return await self.engine.score_pair(candidate, job, weights)
            except Exception as e:
                logger.error(f"Failed to score {candidate.candidate_id} x {job.job_id}: {e}", exc_info=True)
                return MatchResult(
                    candidate_id=candidate.candidate_id, job_id=job.job_id,
                    computed=False, error=str(e) or e.__class__.__name__,
                )

    async def _filter_candidates(self, candidates: List[CandidateProfile], criteria: MatchingCriteria) -> List[CandidateProfile]:
        required = set()
        if criteria.skills:
            canon = await self.engine.canonicalize(criteria.skills)
            required = {v.casefold() for v in canon.values()}

        kept = []
        for candidate in candidates:
            if required:
                held = await self.engine.canonicalize(candidate.skills)
                if not required.issubset({v.casefold() for v in held.values()}):
                    continue
            if criteria.location is not None:
                loc = criteria.location
                if any(
                    getattr(loc, field) and not _eq(getattr(loc, field), getattr(candidate.location, field))
                    for field in ("city", "region", "country")
                ):
                    continue
                if not _within_radius(candidate, loc):
                    continue
                if loc.timezone and timezone_compatible(candidate.location.timezone, loc.timezone) is not True:
                    continue
            if criteria.experience is not None and not _within(
                candidate.years_experience, criteria.experience.min_years, criteria.experience.max_years
            ):
                continue
            if criteria.salary is not None:
                expectation = salary_expectation(candidate.salary_expectation)
                # unknown expectations are not excluded
                if expectation is not None and not _within(expectation, criteria.salary.min, criteria.salary.max):
                    continue
            kept.append(candidate)
        return kept

    @staticmethod
    def _filter_jobs(jobs: List[JobProfile], criteria: MatchingCriteria) -> List[JobProfile]:
        kept = []
        for job in jobs:
            if criteria.job_type and not _eq(criteria.job_type, job.job_type):
                continue
            if criteria.location is not None and criteria.location.remote is not None:
                if job.location.remote != criteria.location.remote:
                    continue
            kept.append(job)
        return kept
