"""
Custom Exception Classes for the Talent Match engine
"""
import asyncio
import functools
from random import uniform
from typing import Dict, Any

from fastapi import HTTPException


class TalentMatchError(Exception):
    """Base exception for the matching engine"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(TalentMatchError):
    """Raised when request data validation fails"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class NotFoundError(TalentMatchError):
    """Raised when a candidate, job or embedding does not exist"""

    def __init__(self, message: str, resource: str = None, resource_ids: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        if resource_ids is not None:
            details['resource_ids'] = resource_ids
        super().__init__(message, error_code="NOT_FOUND", details=details, **kwargs)


class ProviderUnavailableError(TalentMatchError):
    """Raised when the embedding provider or vector index fails or times out"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        super().__init__(message, error_code="PROVIDER_UNAVAILABLE", details=details, **kwargs)


class InvalidWeightsError(TalentMatchError):
    """Describes weights that had to be corrected (never raised to callers)"""

    def __init__(self, message: str, corrections: Dict[str, Any] = None, **kwargs):
        details = kwargs.pop('details', {})
        if corrections:
            details['corrections'] = corrections
        super().__init__(message, error_code="INVALID_WEIGHTS", details=details, **kwargs)


class CacheUnavailableError(TalentMatchError):
    """Raised by cache backends; callers treat it as a miss"""

    def __init__(self, message: str, backend: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if backend:
            details['backend'] = backend
        super().__init__(message, error_code="CACHE_UNAVAILABLE", details=details, **kwargs)


class AliasConflictError(TalentMatchError):
    """Raised when an alias is already bound to a different skill"""

    def __init__(self, message: str, alias: str = None, existing_skill_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if alias:
            details['alias'] = alias
        if existing_skill_id:
            details['existing_skill_id'] = existing_skill_id
        super().__init__(message, error_code="ALIAS_CONFLICT", details=details, **kwargs)


class DatabaseError(TalentMatchError):
    """Raised when database operations fail"""

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        if collection:
            details['collection'] = collection
        super().__init__(message, error_code="DATABASE_ERROR", details=details, **kwargs)


class ConfigurationError(TalentMatchError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


# HTTP Exception Mapping
def map_to_http_exception(exc: TalentMatchError) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code_mapping = {
        ValidationError: 400,
        ConfigurationError: 400,
        InvalidWeightsError: 400,
        NotFoundError: 404,
        AliasConflictError: 409,
        DatabaseError: 500,
        ProviderUnavailableError: 503,
        CacheUnavailableError: 503,
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


# Retry decorator with exponential backoff
def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 0.3,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Retry a coroutine with exponential backoff, logging every failed attempt"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {e}")
                    if attempt == max_attempts:
                        if logger:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise
                    await asyncio.sleep(backoff_factor * (2 ** (attempt - 1)) + uniform(0, backoff_factor))

        return wrapper

    return decorator
