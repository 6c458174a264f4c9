import math
import uuid
from types import SimpleNamespace

import numpy as np
import pytest
import pytest_asyncio

from talent_match.models.models import CandidateProfile, JobProfile, Skill, SkillAlias
from talent_match.models.settings import MatchingSettings
from talent_match.services.batch import BatchMatcher
from talent_match.services.cache import InMemoryCacheBackend, MatchCache
from talent_match.services.interfaces import EmbeddingProvider, ProfileStore, TaxonomyStore, VectorIndex
from talent_match.services.matching import MatchingEngine
from talent_match.services.matching_service import MatchingService
from talent_match.services.taxonomy import SkillNormalizer, seed_taxonomy
from talent_match.utils.exceptions import AliasConflictError, ProviderUnavailableError
from talent_match.utils.utils import cosine_similarities

DIMENSION = 128

# Hand-placed vectors so similarities are known exactly; every other text
# gets its own basis vector and is orthogonal to everything else.
KNOWN_VECTORS = {
    "javascript": [1.0, 0.0, 0.0, 0.0],
    "typescript": [0.9, math.sqrt(1 - 0.81), 0.0, 0.0],  # cos 0.9 with javascript
    "machine learning": [0.0, 0.0, 1.0, 0.0],
    "ml engineering": [0.0, 0.0, 0.95, math.sqrt(1 - 0.9025)],  # cos 0.95 with machine learning
    "deep learning": [0.0, 0.0, 0.6, 0.8],
}


class FakeEmbeddingProvider(EmbeddingProvider):

    def __init__(self, dimension: int = DIMENSION):
        self._dimension = dimension
        self._assigned = {}
        self.calls = []
        self.fail = False

    @property
    def dimension(self) -> int:
        return self._dimension

    def vector_for(self, text: str) -> np.ndarray:
        key = text.strip().lower()
        vec = np.zeros(self._dimension, dtype=np.float32)
        if key in KNOWN_VECTORS:
            known = KNOWN_VECTORS[key]
            vec[:len(known)] = known
            return vec
        if key not in self._assigned:
            self._assigned[key] = len(KNOWN_VECTORS) + len(self._assigned)
        vec[self._assigned[key]] = 1.0
        return vec

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if self.fail:
            raise ProviderUnavailableError("embedding provider is down", provider="fake")
        return self.vector_for(text)


class FakeVectorIndex(VectorIndex):

    def __init__(self):
        self.vectors = {}
        self.fail = False

    async def upsert(self, owner_type, owner_id, label, vector):
        self.vectors[(owner_type, owner_id, label)] = np.asarray(vector, dtype=np.float32)

    async def nearest(self, owner_type, query, k, min_similarity=0.0):
        if self.fail:
            raise ProviderUnavailableError("vector index is down", provider="fake")
        keys = [key for key in self.vectors if key[0] == owner_type]
        if not keys:
            return []
        sims = cosine_similarities(query, np.array([self.vectors[key] for key in keys]))
        best = {}
        for (_, owner_id, _), sim in zip(keys, sims):
            best[owner_id] = max(best.get(owner_id, -1.0), float(sim))
        ranked = sorted(((o, s) for o, s in best.items() if s >= min_similarity), key=lambda p: (-p[1], p[0]))
        return ranked[:k]

    async def get(self, owner_type, owner_id, label=None):
        if self.fail:
            raise ProviderUnavailableError("vector index is down", provider="fake")
        for (o_type, o_id, o_label), vec in self.vectors.items():
            if o_type == owner_type and o_id == owner_id and (label is None or o_label == label):
                return vec
        return None


class FakeTaxonomyStore(TaxonomyStore):

    def __init__(self):
        self.skills = {}  # skill_id -> Skill
        self.aliases = {}  # alias_lower -> SkillAlias

    def _by_name(self, name):
        wanted = name.strip().lower()
        for skill in self.skills.values():
            if skill.name.lower() == wanted:
                return skill
        return None

    async def lookup_exact(self, name):
        return self._by_name(name)

    async def lookup_alias(self, alias):
        found = self.aliases.get(alias.strip().lower())
        if found is None:
            return None
        return self.skills[found.skill_id], found

    async def get_by_id(self, skill_id):
        return self.skills.get(skill_id)

    async def prefix_search(self, prefix, limit):
        p = prefix.strip().lower()
        names = sorted(
            s.name for s in self.skills.values() if s.name.lower().startswith(p) and not s.placeholder
        )[:limit]
        names += [self.skills[a.skill_id].name for key, a in sorted(self.aliases.items()) if key.startswith(p)][:limit]
        return names

    async def upsert_skill(self, name, category="Other", **fields):
        existing = self._by_name(name)
        if existing is not None:
            return existing
        skill_id = fields.pop("skill_id", None) or str(uuid.uuid4())
        skill = Skill(skill_id=skill_id, name=name.strip(), category=category, **fields)
        self.skills[skill_id] = skill
        return skill

    async def add_alias(self, skill_id, alias, confidence=None):
        key = alias.strip().lower()
        canonical = self._by_name(key)
        if canonical is not None and canonical.skill_id != skill_id:
            raise AliasConflictError("alias is another skill's name", alias=alias, existing_skill_id=canonical.skill_id)
        existing = self.aliases.get(key)
        if existing is not None:
            if existing.skill_id != skill_id:
                raise AliasConflictError("alias taken", alias=alias, existing_skill_id=existing.skill_id)
            return existing
        self.aliases[key] = SkillAlias(alias=alias.strip(), skill_id=skill_id, confidence=confidence)
        return self.aliases[key]


class FakeProfileStore(ProfileStore):

    def __init__(self, candidates=(), jobs=()):
        self.candidates = {c.candidate_id: c for c in candidates}
        self.jobs = {j.job_id: j for j in jobs}

    async def get_candidate(self, candidate_id):
        return self.candidates.get(candidate_id)

    async def get_job(self, job_id):
        return self.jobs.get(job_id)


def make_candidates():
    return [
        CandidateProfile(
            candidate_id="cand-1",
            skills=["React", "Node.js", "TypeScript"],
            location={"city": "Berlin", "region": "Berlin", "country": "Germany",
                      "coordinates": {"lat": 52.52, "lng": 13.405}, "timezone": "Europe/Berlin"},
            years_experience=5,
            salary_expectation={"min": 70000, "max": 85000, "currency": "EUR"},
            job_type="full-time",
        ),
        CandidateProfile(
            candidate_id="cand-2",
            skills=["Python", "js"],
            location={"city": "Munich", "region": "Bavaria", "country": "Germany", "timezone": "CET"},
            years_experience=2,
            salary_expectation={"min": 50000},
        ),
        CandidateProfile(candidate_id="cand-3", skills=["Python"]),
    ]


def make_jobs():
    return [
        JobProfile(
            job_id="job-1",
            title="Frontend Engineer",
            required_skills=["React", "Node.js", "JavaScript"],
            location={"city": "Berlin", "country": "Germany", "coordinates": {"lat": 52.52, "lng": 13.405}},
            experience={"min_years": 3, "max_years": 6},
            salary_range={"min": 60000, "max": 80000},
            job_type="full-time",
        ),
        JobProfile(
            job_id="job-2",
            title="Platform Engineer",
            required_skills=["React", "Node.js", "JavaScript"],
            location={"city": "Tokyo", "country": "Japan"},
            experience={"min_years": 10, "max_years": 15},
            salary_range={"max": 30000},
            job_type="contract",
        ),
        JobProfile(
            job_id="job-3",
            title="Infrastructure Engineer",
            required_skills=["Python", "Kubernetes", "Go"],
            location={"remote": True},
        ),
    ]


async def build_stack(settings=None, embed_profiles=True):
    """Wire the real service classes on top of the in-memory fakes."""
    settings = settings or MatchingSettings()
    store = FakeTaxonomyStore()
    provider = FakeEmbeddingProvider()
    index = FakeVectorIndex()
    profiles = FakeProfileStore(make_candidates(), make_jobs())
    backend = InMemoryCacheBackend()
    cache = MatchCache(backend)

    await seed_taxonomy(store, index, provider)
    if embed_profiles:
        for candidate_id in profiles.candidates:
            await index.upsert("candidate", candidate_id, "profile", provider.vector_for(candidate_id))
        for job_id in profiles.jobs:
            await index.upsert("job", job_id, "job_full", provider.vector_for(job_id))
    provider.calls.clear()

    normalizer = SkillNormalizer(store, provider, index, cache, settings)
    engine = MatchingEngine(profiles, normalizer, provider, index, settings)
    batch = BatchMatcher(engine, profiles, settings.batch)
    service = MatchingService(normalizer, engine, batch, cache, store, index, provider, settings)
    return SimpleNamespace(
        settings=settings, store=store, provider=provider, index=index, profiles=profiles,
        backend=backend, cache=cache, normalizer=normalizer, engine=engine, batch=batch, service=service,
    )


@pytest_asyncio.fixture
async def stack():
    return await build_stack()


@pytest.fixture
def settings():
    return MatchingSettings()
