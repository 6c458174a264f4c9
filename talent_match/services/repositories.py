"""MongoDB implementations of the taxonomy, vector index and profile stores."""
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from talent_match.models.models import CandidateProfile, EmbeddingRecord, JobProfile, Skill, SkillAlias
from talent_match.services import db as dbmod
from talent_match.services.interfaces import ProfileStore, TaxonomyStore, VectorIndex
from talent_match.utils.exceptions import (
    AliasConflictError, DatabaseError, ProviderUnavailableError, ValidationError
)
from talent_match.utils.logging_config import get_logger
from talent_match.utils.utils import cosine_similarities

logger = get_logger(__name__)


def _skill_from_doc(doc) -> Optional[Skill]:
    doc = dbmod.to_dict(doc)
    if doc is None:
        return None
    doc.pop("name_lower", None)
    doc.pop("created_at", None)
    return Skill(**doc)


class MongoTaxonomyStore(TaxonomyStore):

    def __init__(self, database):
        self.skills = database[dbmod.SKILLS]
        self.aliases = database[dbmod.SKILL_ALIASES]

    async def lookup_exact(self, name: str) -> Optional[Skill]:
        try:
            doc = await self.skills.find_one({"name_lower": name.strip().lower()})
        except PyMongoError as e:
            raise DatabaseError(f"Skill lookup failed: {e}", operation="find_one", collection=dbmod.SKILLS, cause=e) from e
        return _skill_from_doc(doc)

    async def lookup_alias(self, alias: str) -> Optional[Tuple[Skill, SkillAlias]]:
        try:
            doc = await self.aliases.find_one({"alias_lower": alias.strip().lower()})
        except PyMongoError as e:
            raise DatabaseError(f"Alias lookup failed: {e}", operation="find_one", collection=dbmod.SKILL_ALIASES, cause=e) from e
        if not doc:
            return None
        skill = await self.get_by_id(doc["skill_id"])
        if skill is None:
            logger.warning(f"Alias '{doc['alias']}' points at missing skill {doc['skill_id']}")
            return None
        return skill, SkillAlias(alias=doc["alias"], skill_id=doc["skill_id"], confidence=doc.get("confidence"))

    async def get_by_id(self, skill_id: str) -> Optional[Skill]:
        return _skill_from_doc(await self.skills.find_one({"skill_id": skill_id}))

    async def get_many(self, skill_ids: Iterable[str]) -> Dict[str, Skill]:
        cursor = self.skills.find({"skill_id": {"$in": list(skill_ids)}})
        docs = await cursor.to_list(length=None)
        skills = [_skill_from_doc(d) for d in docs]
        return {s.skill_id: s for s in skills}

    async def prefix_search(self, prefix: str, limit: int) -> List[str]:
        pattern = "^" + re.escape(prefix.strip().lower())
        try:
            skill_docs = await self.skills.find(
                {"name_lower": {"$regex": pattern}, "placeholder": {"$ne": True}}, {"name": 1}
            ).limit(limit).to_list(length=None)
            alias_docs = await self.aliases.find(
                {"alias_lower": {"$regex": pattern}}, {"skill_id": 1}
            ).limit(limit).to_list(length=None)
        except PyMongoError as e:
            raise DatabaseError(f"Prefix search failed: {e}", operation="find", cause=e) from e

        names = [d["name"] for d in skill_docs]
        if alias_docs:
            by_id = await self.get_many(d["skill_id"] for d in alias_docs)
            names.extend(by_id[d["skill_id"]].name for d in alias_docs if d["skill_id"] in by_id)
        return names

    async def upsert_skill(self, name: str, category: str = "Other", **fields: Any) -> Skill:
        name_lower = name.strip().lower()
        on_insert = {
            "skill_id": fields.pop("skill_id", None) or str(uuid.uuid4()),
            "name": name.strip(),
            "name_lower": name_lower,
            "category": category,
            "created_at": datetime.utcnow(),
            **fields,
        }
        try:
            doc = await self.skills.find_one_and_update(
                {"name_lower": name_lower},
                {"$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # lost the race; the first writer's record stands
            doc = await self.skills.find_one({"name_lower": name_lower})
        return _skill_from_doc(doc)

    async def add_alias(self, skill_id: str, alias: str, confidence: Optional[float] = None) -> SkillAlias:
        alias_lower = alias.strip().lower()

        canonical = await self.lookup_exact(alias_lower)
        if canonical is not None and canonical.skill_id != skill_id:
            raise AliasConflictError(
                f"Alias '{alias}' is the canonical name of another skill",
                alias=alias, existing_skill_id=canonical.skill_id,
            )

        existing = await self.aliases.find_one({"alias_lower": alias_lower})
        if existing is None:
            try:
                await self.aliases.insert_one({
                    "alias": alias.strip(),
                    "alias_lower": alias_lower,
                    "skill_id": skill_id,
                    "confidence": confidence,
                })
                return SkillAlias(alias=alias.strip(), skill_id=skill_id, confidence=confidence)
            except DuplicateKeyError:
                existing = await self.aliases.find_one({"alias_lower": alias_lower})

        if existing["skill_id"] != skill_id:
            raise AliasConflictError(
                f"Alias '{alias}' already belongs to another skill",
                alias=alias, existing_skill_id=existing["skill_id"],
            )
        return SkillAlias(alias=existing["alias"], skill_id=skill_id, confidence=existing.get("confidence"))


class MongoVectorIndex(VectorIndex):
    """Brute-force cosine search over the embeddings collection."""

    def __init__(self, database, dimension: int = 768):
        self.embeddings = database[dbmod.EMBEDDINGS]
        self.dimension = dimension

    async def upsert(self, owner_type: str, owner_id: str, label: str, vector: Sequence[float]) -> None:
        try:
            record = EmbeddingRecord(
                owner_type=owner_type, owner_id=owner_id, label=label, vector=[float(x) for x in vector]
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid embedding record: {e}", field="owner_type") from e
        if len(record.vector) != self.dimension:
            raise ValidationError(
                f"Vector has {len(record.vector)} dimensions, index expects {self.dimension}",
                field="vector",
            )
        try:
            await self.embeddings.update_one(
                {"owner_type": record.owner_type.value, "owner_id": record.owner_id, "label": record.label},
                {"$set": {"vector": record.vector, "dimension": len(record.vector), "updated_at": datetime.utcnow()}},
                upsert=True,
            )
        except PyMongoError as e:
            raise ProviderUnavailableError(f"Vector upsert failed: {e}", provider="vector_index", cause=e) from e

    async def nearest(
        self, owner_type: str, query: Sequence[float], k: int, min_similarity: float = 0.0
    ) -> List[Tuple[str, float]]:
        query = np.asarray(query, dtype=np.float32)
        try:
            docs = await self.embeddings.find(
                {"owner_type": owner_type, "dimension": int(query.shape[0])},
                {"owner_id": 1, "vector": 1},
            ).to_list(length=None)
        except PyMongoError as e:
            raise ProviderUnavailableError(f"Vector lookup failed: {e}", provider="vector_index", cause=e) from e

        if not docs:
            return []

        matrix = np.array([d["vector"] for d in docs], dtype=np.float32)
        sims = cosine_similarities(query, matrix)

        # an owner may have several labels; keep its best
        best: Dict[str, float] = {}
        for doc, sim in zip(docs, sims):
            owner_id = doc["owner_id"]
            if sim > best.get(owner_id, -1.0):
                best[owner_id] = float(sim)

        ranked = sorted(
            ((owner_id, sim) for owner_id, sim in best.items() if sim >= min_similarity),
            key=lambda pair: (-pair[1], pair[0]),
        )
        return ranked[:k]

    async def get(self, owner_type: str, owner_id: str, label: Optional[str] = None) -> Optional[np.ndarray]:
        query = {"owner_type": owner_type, "owner_id": owner_id}
        if label is not None:
            query["label"] = label
        try:
            doc = await self.embeddings.find_one(query, {"vector": 1})
        except PyMongoError as e:
            raise ProviderUnavailableError(f"Vector read failed: {e}", provider="vector_index", cause=e) from e
        if not doc:
            return None
        return np.asarray(doc["vector"], dtype=np.float32)


class MongoProfileStore(ProfileStore):

    def __init__(self, database):
        self.candidates = database[dbmod.CANDIDATES]
        self.jobs = database[dbmod.JOBS]

    async def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        doc = dbmod.to_dict(await self.candidates.find_one({"candidate_id": candidate_id}))
        return CandidateProfile.model_validate(doc) if doc else None

    async def get_job(self, job_id: str) -> Optional[JobProfile]:
        doc = dbmod.to_dict(await self.jobs.find_one({"job_id": job_id}))
        return JobProfile.model_validate(doc) if doc else None

    async def get_candidates(self, candidate_ids: Iterable[str]) -> Dict[str, CandidateProfile]:
        docs = await self.candidates.find({"candidate_id": {"$in": list(candidate_ids)}}).to_list(length=None)
        profiles = [CandidateProfile.model_validate(dbmod.to_dict(d)) for d in docs]
        return {p.candidate_id: p for p in profiles}

    async def get_jobs(self, job_ids: Iterable[str]) -> Dict[str, JobProfile]:
        docs = await self.jobs.find({"job_id": {"$in": list(job_ids)}}).to_list(length=None)
        profiles = [JobProfile.model_validate(dbmod.to_dict(d)) for d in docs]
        return {p.job_id: p for p in profiles}
