"""Collaborator interfaces the matching core depends on.

Concrete MongoDB/Ollama implementations live in ``repositories.py`` and
``embeddings.py``; tests substitute in-memory fakes.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from talent_match.models.models import CandidateProfile, JobProfile, Skill, SkillAlias


class EmbeddingProvider(ABC):
    """Turns text into a fixed-length dense vector."""

    @abstractmethod
    async def embed(self, text: str) -> np.ndarray:
        """Embed one text. Raises ProviderUnavailableError on failure."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass


class VectorIndex(ABC):
    """Vectors keyed by (owner_type, owner_id, label) with cosine lookup."""

    @abstractmethod
    async def upsert(self, owner_type: str, owner_id: str, label: str, vector: Sequence[float]) -> None:
        pass

    @abstractmethod
    async def nearest(
        self, owner_type: str, query: Sequence[float], k: int, min_similarity: float = 0.0
    ) -> List[Tuple[str, float]]:
        """Return up to k (owner_id, similarity) pairs, best first."""

    @abstractmethod
    async def get(self, owner_type: str, owner_id: str, label: Optional[str] = None) -> Optional[np.ndarray]:
        """Stored vector for an owner (any label when label is None)."""


class TaxonomyStore(ABC):
    """Canonical skills and their aliases."""

    @abstractmethod
    async def lookup_exact(self, name: str) -> Optional[Skill]:
        pass

    @abstractmethod
    async def lookup_alias(self, alias: str) -> Optional[Tuple[Skill, SkillAlias]]:
        pass

    @abstractmethod
    async def get_by_id(self, skill_id: str) -> Optional[Skill]:
        pass

    @abstractmethod
    async def prefix_search(self, prefix: str, limit: int) -> List[str]:
        """Canonical names whose name or alias starts with prefix."""

    @abstractmethod
    async def upsert_skill(self, name: str, category: str = "Other", **fields: Any) -> Skill:
        """Create the skill if its name is new; otherwise return the existing one."""

    @abstractmethod
    async def add_alias(self, skill_id: str, alias: str, confidence: Optional[float] = None) -> SkillAlias:
        """Bind an alias. Raises AliasConflictError if it belongs to another skill."""


class ProfileStore(ABC):
    """Read-only access to candidate and job records."""

    @abstractmethod
    async def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[JobProfile]:
        pass

    async def get_candidates(self, candidate_ids: Iterable[str]) -> Dict[str, CandidateProfile]:
        found = {}
        for candidate_id in candidate_ids:
            profile = await self.get_candidate(candidate_id)
            if profile is not None:
                found[candidate_id] = profile
        return found

    async def get_jobs(self, job_ids: Iterable[str]) -> Dict[str, JobProfile]:
        found = {}
        for job_id in job_ids:
            profile = await self.get_job(job_id)
            if profile is not None:
                found[job_id] = profile
        return found


class CacheBackend(ABC):
    """Key/value store with TTL and tag-based invalidation."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int, tags: Sequence[str] = ()) -> None:
        pass

    @abstractmethod
    async def delete_tags(self, tags: Sequence[str]) -> int:
        """Drop every entry carrying any of the tags; returns how many went."""
