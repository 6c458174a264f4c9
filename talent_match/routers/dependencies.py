from fastapi import Request

from talent_match.services.matching_service import MatchingService


def get_matching_service(request: Request) -> MatchingService:
    """The service built during application startup"""
    return request.app.state.matching_service
