from typing import List

from fastapi import APIRouter, Depends, Query

from talent_match.models.response import NormalizedSkill, SeedReport, SuggestionsResponse
from talent_match.models.schemas import BulkNormalizeRequest, NormalizeSkillRequest
from talent_match.routers.dependencies import get_matching_service
from talent_match.services.matching_service import MatchingService
from talent_match.utils.exceptions import TalentMatchError, map_to_http_exception
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/normalize", response_model=NormalizedSkill)
async def normalize_skill(body: NormalizeSkillRequest, service: MatchingService = Depends(get_matching_service)):
    """Resolve one free-text skill to its canonical taxonomy entry"""
    try:
        return await service.normalize_skill(body.skill)
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.post("/normalize/bulk", response_model=List[NormalizedSkill])
async def bulk_normalize(body: BulkNormalizeRequest, service: MatchingService = Depends(get_matching_service)):
    try:
        return await service.bulk_normalize(body.skills)
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggest_skills(
    q: str = Query(..., min_length=1, description="Skill name prefix"),
    limit: int = Query(10, ge=1, le=50),
    service: MatchingService = Depends(get_matching_service),
):
    """Autocomplete over canonical names and aliases"""
    try:
        return SuggestionsResponse(suggestions=await service.suggest_skills(q, limit))
    except TalentMatchError as e:
        raise map_to_http_exception(e)


@router.post("/taxonomy/seed", response_model=SeedReport)
async def seed_taxonomy(service: MatchingService = Depends(get_matching_service)):
    """Load the starter taxonomy and embed its skill names"""
    try:
        report = await service.seed_taxonomy()
    except TalentMatchError as e:
        raise map_to_http_exception(e)
    logger.info(f"Taxonomy seed requested: {report.model_dump()}")
    return report
