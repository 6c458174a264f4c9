from fastapi import APIRouter, Depends, Query

from talent_match.models.response import (
    BatchMatchResponse, InvalidationReport, MatchResult, PageOfMatches, SkillMatchResult
)
from talent_match.models.schemas import (
    BatchMatchRequest, CandidateJobMatchRequest, InvalidateRequest, SkillMatchRequest
)
from talent_match.routers.dependencies import get_matching_service
from talent_match.services.matching_service import MatchingService
from talent_match.utils.exceptions import TalentMatchError, ValidationError, map_to_http_exception
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/candidate-job", response_model=MatchResult)
async def match_candidate_to_job(body: CandidateJobMatchRequest, service: MatchingService = Depends(get_matching_service)):
    """Score one candidate against one job"""
    try:
        return await service.match_candidate_to_job(body.candidate_id, body.job_id, body.weights)
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.post("/batch", response_model=BatchMatchResponse)
async def batch_match(body: BatchMatchRequest, service: MatchingService = Depends(get_matching_service)):
    """Score every candidate against every job, best first"""
    logger.info(f"Batch match requested: {len(body.candidate_ids)} candidates x {len(body.job_ids)} jobs")
    try:
        return await service.batch_match(
            body.candidate_ids,
            body.job_ids,
            criteria=body.criteria,
            weights=body.weights,
            min_score=body.min_score,
            limit=body.limit,
            deadline_seconds=body.deadline_seconds,
        )
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.post("/skills", response_model=SkillMatchResult)
async def match_by_skills(body: SkillMatchRequest, service: MatchingService = Depends(get_matching_service)):
    """Compare two skill lists without stored profiles"""
    try:
        return await service.match_by_skills(body.candidate_skills, body.job_skills, body.threshold)
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.get("/jobs/{job_id}/candidates", response_model=PageOfMatches)
async def list_job_matches(
    job_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    min_similarity: float = Query(0.0),
    service: MatchingService = Depends(get_matching_service),
):
    """Candidates closest to a job's embedding, paginated"""
    try:
        return await service.list_job_matches(job_id, page, page_size, min_similarity)
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.post("/invalidate", response_model=InvalidationReport)
async def invalidate(body: InvalidateRequest, service: MatchingService = Depends(get_matching_service)):
    """Drop cached results after a candidate or job changed"""
    try:
        if not body.candidate_id and not body.job_id:
            raise ValidationError("candidate_id or job_id is required")
        return await service.invalidate(body.candidate_id, body.job_id)
    except TalentMatchError as e:
        raise map_to_http_exception(e)
