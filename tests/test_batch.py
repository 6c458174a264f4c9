import asyncio
from unittest.mock import patch

import pytest

from talent_match.models.models import CriteriaLocation, ExperienceBand, MatchingCriteria, SalaryRange
from talent_match.models.settings import BatchSettings
from talent_match.services.batch import DEADLINE_EXCEEDED, BatchMatcher
from talent_match.utils.exceptions import NotFoundError, ValidationError


class TestBatchMatch:

    @pytest.mark.asyncio
    async def test_cross_product_equals_single_matches(self, stack):
        results = await stack.batch.batch_match(["cand-1", "cand-2"], ["job-1", "job-2"])

        assert len(results) == 4
        assert {(r.candidate_id, r.job_id) for r in results} == {
            ("cand-1", "job-1"), ("cand-1", "job-2"), ("cand-2", "job-1"), ("cand-2", "job-2"),
        }
        for result in results:
            direct = await stack.engine.match_candidate_to_job(result.candidate_id, result.job_id)
            assert result.model_dump() == direct.model_dump()

    @pytest.mark.asyncio
    async def test_no_implicit_filtering(self, stack):
        results = await stack.batch.batch_match(["cand-3"], ["job-1", "job-2"])
        assert len(results) == 2
        assert all(r.computed for r in results)

    @pytest.mark.asyncio
    async def test_duplicate_ids_scored_once(self, stack):
        results = await stack.batch.batch_match(["cand-1", "cand-1"], ["job-1"])
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_caps_are_enforced(self, stack):
        matcher = BatchMatcher(stack.engine, stack.profiles, max_candidates=1, max_jobs=1)

        with pytest.raises(ValidationError) as exc_info:
            await matcher.batch_match(["cand-1", "cand-2"], ["job-1"])
        assert exc_info.value.details["field"] == "candidate_ids"

        with pytest.raises(ValidationError):
            await matcher.batch_match(["cand-1"], ["job-1", "job-2"])

    @pytest.mark.asyncio
    async def test_unknown_ids_listed(self, stack):
        with pytest.raises(NotFoundError) as exc_info:
            await stack.batch.batch_match(["cand-1", "ghost"], ["job-1", "no-job"])

        assert exc_info.value.details["resource_ids"] == {"candidates": ["ghost"], "jobs": ["no-job"]}

    @pytest.mark.asyncio
    async def test_pair_failure_is_isolated(self, stack):
        original = stack.engine.score_pair

        async def flaky(candidate, job, weights):
            if job.job_id == "job-2":
                raise RuntimeError("scoring exploded")
            return await original(candidate, job, weights)

        with patch.object(stack.engine, "score_pair", side_effect=flaky):
            results = await stack.batch.batch_match(["cand-1"], ["job-1", "job-2"])

        by_job = {r.job_id: r for r in results}
        assert by_job["job-1"].computed
        assert not by_job["job-2"].computed
        assert by_job["job-2"].error == "scoring exploded"

    @pytest.mark.asyncio
    async def test_deadline_marks_unfinished_pairs(self, stack):
        original = stack.engine.score_pair

        async def slow(candidate, job, weights):
            if job.job_id == "job-2":
                await asyncio.sleep(5)
            return await original(candidate, job, weights)

        with patch.object(stack.engine, "score_pair", side_effect=slow):
            results = await stack.batch.batch_match(["cand-1"], ["job-1", "job-2"], deadline_seconds=0.2)

        by_job = {r.job_id: r for r in results}
        assert by_job["job-1"].computed
        assert by_job["job-2"].computed is False
        assert by_job["job-2"].error == DEADLINE_EXCEEDED

    @pytest.mark.asyncio
    async def test_weights_apply_to_every_pair(self, stack):
        weights = {"skills": 1, "location": 0, "experience": 0, "salary": 0}
        results = await stack.batch.batch_match(["cand-1", "cand-2"], ["job-1"], weights=weights)
        for result in results:
            assert result.total_score == pytest.approx(result.skill_score)


class TestCriteria:

    @pytest.mark.asyncio
    async def test_required_skills_use_canonical_names(self, stack):
        criteria = MatchingCriteria(skills=["JavaScript"])
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)

        # cand-2 lists "js"; cand-1 only has TypeScript
        assert [r.candidate_id for r in results] == ["cand-2"]

    @pytest.mark.asyncio
    async def test_location_fields(self, stack):
        criteria = MatchingCriteria(location=CriteriaLocation(country="germany"))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)
        assert {r.candidate_id for r in results} == {"cand-1", "cand-2"}

    @pytest.mark.asyncio
    async def test_experience_band(self, stack):
        criteria = MatchingCriteria(experience=ExperienceBand(min_years=3))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)
        assert [r.candidate_id for r in results] == ["cand-1"]

    @pytest.mark.asyncio
    async def test_salary_band_keeps_unknown_expectations(self, stack):
        criteria = MatchingCriteria(salary=SalaryRange(max=60000))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)
        assert {r.candidate_id for r in results} == {"cand-2", "cand-3"}

    @pytest.mark.asyncio
    async def test_job_filters(self, stack):
        by_type = await stack.batch.batch_match(
            ["cand-1"], ["job-1", "job-2", "job-3"], criteria=MatchingCriteria(job_type="Contract")
        )
        assert [r.job_id for r in by_type] == ["job-2"]

        remote = await stack.batch.batch_match(
            ["cand-1"], ["job-1", "job-2", "job-3"],
            criteria=MatchingCriteria(location=CriteriaLocation(remote=True)),
        )
        assert [r.job_id for r in remote] == ["job-3"]

    @pytest.mark.asyncio
    async def test_everything_filtered_out(self, stack):
        criteria = MatchingCriteria(skills=["Haskell"])
        assert await stack.batch.batch_match(["cand-1"], ["job-1"], criteria=criteria) == []

    @pytest.mark.asyncio
    async def test_radius_excludes_candidates_without_coordinates(self, stack):
        berlin = {"lat": 52.52, "lng": 13.405}
        near = MatchingCriteria(location=CriteriaLocation(center=berlin, max_distance_km=25))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=near)
        assert [r.candidate_id for r in results] == ["cand-1"]

        hamburg = {"lat": 53.55, "lng": 9.99}
        far = MatchingCriteria(location=CriteriaLocation(center=hamburg, max_distance_km=100))
        assert await stack.batch.batch_match(["cand-1"], ["job-1"], criteria=far) == []

    @pytest.mark.asyncio
    async def test_radius_without_center_is_ignored(self, stack):
        criteria = MatchingCriteria(location=CriteriaLocation(max_distance_km=10))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_timezone_group(self, stack):
        criteria = MatchingCriteria(location=CriteriaLocation(timezone="Europe/Paris"))
        results = await stack.batch.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1"], criteria=criteria)
        # cand-3 has no timezone
        assert {r.candidate_id for r in results} == {"cand-1", "cand-2"}

        eastern = MatchingCriteria(location=CriteriaLocation(timezone="EST"))
        assert await stack.batch.batch_match(["cand-1", "cand-2"], ["job-1"], criteria=eastern) == []


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_pairs_in_flight_never_exceed_limit(self, stack):
        matcher = BatchMatcher(stack.engine, stack.profiles, BatchSettings(max_concurrent_pairs=2))
        original = stack.engine.score_pair
        in_flight = 0
        peak = 0

        async def tracked(candidate, job, weights):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.01)
                return await original(candidate, job, weights)
            finally:
                in_flight -= 1

        with patch.object(stack.engine, "score_pair", side_effect=tracked):
            results = await matcher.batch_match(["cand-1", "cand-2", "cand-3"], ["job-1", "job-2", "job-3"])

        assert len(results) == 9
        assert all(r.computed for r in results)
        assert peak == 2
