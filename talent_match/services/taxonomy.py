"""
Skill normalization against the taxonomy.

Resolution runs an ordered list of strategies (exact name, alias, semantic
nearest neighbour); the first one that matches wins, otherwise the raw text
comes back with confidence 0.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from talent_match.helpers.seed_data import SEED_ALIASES, SEED_SKILLS
from talent_match.models.models import OwnerType
from talent_match.models.response import NormalizedSkill, SeedReport
from talent_match.models.settings import MatchingSettings
from talent_match.services.cache import CacheKey, MatchCache
from talent_match.services.interfaces import EmbeddingProvider, TaxonomyStore, VectorIndex
from talent_match.utils.exceptions import AliasConflictError, ProviderUnavailableError
from talent_match.utils.logging_config import get_logger, log_function_call

logger = get_logger(__name__)

DEFAULT_ALIAS_CONFIDENCE = 0.95
UNMATCHED_CATEGORY = "Other"
SKILL_EMBEDDING_LABEL = "skill_name"

EXACT = "exact"
ALIAS = "alias"
SEMANTIC = "semantic"
NONE = "none"

PROVIDER_UNAVAILABLE = "provider_unavailable"


@dataclass
class ResolutionOutcome:
    """Tagged result of one strategy: matched with a result, or unmatched with a reason."""
    strategy: str
    matched: bool
    result: Optional[NormalizedSkill] = None
    reason: Optional[str] = None

    @classmethod
    def hit(cls, strategy: str, result: NormalizedSkill) -> "ResolutionOutcome":
        return cls(strategy=strategy, matched=True, result=result)

    @classmethod
    def miss(cls, strategy: str, reason: str = "no_match") -> "ResolutionOutcome":
        return cls(strategy=strategy, matched=False, reason=reason)


class ResolutionStrategy(ABC):
    name: str = NONE
    semantic: bool = False

    @abstractmethod
    async def resolve(self, text: str) -> ResolutionOutcome:
        pass


class ExactNameStrategy(ResolutionStrategy):
    name = EXACT

    def __init__(self, store: TaxonomyStore):
        self.store = store

    async def resolve(self, text: str) -> ResolutionOutcome:
        skill = await self.store.lookup_exact(text)
        # placeholders record unrecognised input; they never count as a resolution
        if skill is None or skill.placeholder:
            return ResolutionOutcome.miss(self.name)
        return ResolutionOutcome.hit(self.name, NormalizedSkill(
            normalized=skill.name, category=skill.category, confidence=1.0,
            skill_id=skill.skill_id, strategy=self.name,
        ))


class AliasStrategy(ResolutionStrategy):
    name = ALIAS

    def __init__(self, store: TaxonomyStore, default_confidence: float = DEFAULT_ALIAS_CONFIDENCE):
        self.store = store
        self.default_confidence = default_confidence

    async def resolve(self, text: str) -> ResolutionOutcome:
        found = await self.store.lookup_alias(text)
        if found is None:
            return ResolutionOutcome.miss(self.name)
        skill, alias = found
        confidence = alias.confidence if alias.confidence is not None else self.default_confidence
        return ResolutionOutcome.hit(self.name, NormalizedSkill(
            normalized=skill.name, category=skill.category, confidence=confidence,
            skill_id=skill.skill_id, strategy=self.name,
        ))


class SemanticStrategy(ResolutionStrategy):
    """Nearest skill embeddings above a similarity floor."""
    name = SEMANTIC
    semantic = True

    def __init__(
        self,
        store: TaxonomyStore,
        provider: EmbeddingProvider,
        vector_index: VectorIndex,
        min_similarity: float = 0.7,
        neighbours: int = 3,
    ):
        self.store = store
        self.provider = provider
        self.vector_index = vector_index
        self.min_similarity = min_similarity
        self.neighbours = neighbours

    async def resolve(self, text: str) -> ResolutionOutcome:
        try:
            vector = await self.provider.embed(text)
            nearest = await self.vector_index.nearest(
                OwnerType.SKILL.value, vector, k=self.neighbours, min_similarity=self.min_similarity
            )
        except ProviderUnavailableError as e:
            logger.warning(f"Semantic normalization unavailable for '{text}': {e.message}")
            return ResolutionOutcome.miss(self.name, reason=PROVIDER_UNAVAILABLE)

        skills = []
        for skill_id, similarity in nearest:
            skill = await self.store.get_by_id(skill_id)
            if skill is not None:
                skills.append((skill, similarity))
        if not skills:
            return ResolutionOutcome.miss(self.name)

        best, similarity = skills[0]
        return ResolutionOutcome.hit(self.name, NormalizedSkill(
            normalized=best.name,
            category=best.category,
            confidence=max(0.0, min(1.0, similarity)),
            alternatives=[s.name for s, _ in skills[1:3]],
            skill_id=best.skill_id,
            strategy=self.name,
        ))


class SkillNormalizer:
    """Resolves free-text skills to canonical taxonomy entries."""

    def __init__(
        self,
        store: TaxonomyStore,
        provider: Optional[EmbeddingProvider] = None,
        vector_index: Optional[VectorIndex] = None,
        cache: Optional[MatchCache] = None,
        settings: Optional[MatchingSettings] = None,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
    ):
        self.store = store
        self.cache = cache
        self.settings = settings or MatchingSettings()

        if strategies is None:
            strategies = [ExactNameStrategy(store), AliasStrategy(store)]
            if provider is not None and vector_index is not None:
                strategies.append(SemanticStrategy(
                    store, provider, vector_index,
                    min_similarity=self.settings.thresholds.semantic_normalize_min,
                    neighbours=self.settings.thresholds.semantic_neighbours,
                ))
        self.strategies = list(strategies)
        self.taxonomy_strategies = [s for s in self.strategies if not s.semantic]

    @staticmethod
    def _no_match(raw: str) -> NormalizedSkill:
        return NormalizedSkill(normalized=raw, category=UNMATCHED_CATEGORY, confidence=0.0, alternatives=[], strategy=NONE)

    @staticmethod
    async def _run_chain(text: str, strategies: Iterable[ResolutionStrategy]) -> List[ResolutionOutcome]:
        outcomes = []
        for strategy in strategies:
            outcome = await strategy.resolve(text)
            outcomes.append(outcome)
            if outcome.matched:
                break
        return outcomes

    async def normalize(self, raw: str) -> NormalizedSkill:
        text = raw.strip()
        if not text:
            return self._no_match(raw)

        key = CacheKey.of("skill_normalize", skill=text.lower())
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return NormalizedSkill.model_validate(cached)

        outcomes = await self._run_chain(text, self.strategies)
        final = outcomes[-1] if outcomes else None
        ttl = self.settings.cache

        if final is not None and final.matched:
            result = final.result
            cache_ttl = ttl.normalize_semantic_ttl if final.strategy == SEMANTIC else ttl.normalize_hit_ttl
            logger.debug(f"Normalized '{text}' -> '{result.normalized}' via {final.strategy} ({result.confidence:.2f})")
        else:
            result = self._no_match(raw)
            degraded = any(o.reason == PROVIDER_UNAVAILABLE for o in outcomes)
            # a miss caused by an outage says nothing about the taxonomy
            cache_ttl = None if degraded else ttl.normalize_miss_ttl
            if self.settings.create_placeholders and not degraded:
                await self._register_placeholder(text)

        if self.cache is not None and cache_ttl is not None:
            await self.cache.set(key, result.model_dump(mode="json"), cache_ttl)
        return result

    async def canonical_name(self, raw: str) -> Optional[NormalizedSkill]:
        """Exact/alias resolution only; None when the taxonomy does not know the text."""
        text = raw.strip()
        if not text:
            return None
        outcomes = await self._run_chain(text, self.taxonomy_strategies)
        if outcomes and outcomes[-1].matched:
            return outcomes[-1].result
        return None

    async def bulk_normalize(self, raws: Sequence[str]) -> List[NormalizedSkill]:
        return list(await asyncio.gather(*(self.normalize(r) for r in raws)))

    async def suggest(self, prefix: str, limit: int = 10) -> List[str]:
        text = prefix.strip()
        if not text or limit <= 0:
            return []

        key = CacheKey.of("skill_suggestions", prefix=text.lower(), limit=limit)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return list(cached)

        seen = set()
        suggestions = []
        for name in await self.store.prefix_search(text, limit):
            if name.lower() not in seen:
                seen.add(name.lower())
                suggestions.append(name)
        suggestions = suggestions[:limit]

        if self.cache is not None:
            await self.cache.set(key, suggestions, self.settings.cache.suggestions_ttl)
        return suggestions

    async def _register_placeholder(self, text: str) -> None:
        skill = await self.store.upsert_skill(text, UNMATCHED_CATEGORY, placeholder=True)
        logger.info(f"Registered placeholder skill '{skill.name}' ({skill.skill_id})")


@log_function_call
async def seed_taxonomy(
    store: TaxonomyStore,
    vector_index: Optional[VectorIndex] = None,
    provider: Optional[EmbeddingProvider] = None,
    skills=SEED_SKILLS,
    aliases=SEED_ALIASES,
) -> SeedReport:
    """Idempotently load skills, aliases and skill-name embeddings."""
    logger.info(f"Seeding skill taxonomy with {len(skills)} skills and {len(aliases)} aliases")

    by_name = {}
    for entry in skills:
        fields = {k: v for k, v in entry.items() if k not in ("name", "category")}
        skill = await store.upsert_skill(entry["name"], entry.get("category", UNMATCHED_CATEGORY), **fields)
        by_name[entry["name"].lower()] = skill

    alias_count = 0
    for skill_name, alias, confidence in aliases:
        skill = by_name.get(skill_name.lower())
        if skill is None:
            logger.warning(f"Alias '{alias}' refers to unknown skill '{skill_name}', skipping")
            continue
        try:
            await store.add_alias(skill.skill_id, alias, confidence)
            alias_count += 1
        except AliasConflictError as e:
            logger.warning(f"Skipping alias: {e.message}")

    embedded = 0
    if provider is not None and vector_index is not None:
        for skill in by_name.values():
            try:
                vector = await provider.embed(skill.name)
                await vector_index.upsert(OwnerType.SKILL.value, skill.skill_id, SKILL_EMBEDDING_LABEL, vector)
                embedded += 1
            except ProviderUnavailableError as e:
                logger.warning(f"Failed to embed skill {skill.name}: {e.message}")

    logger.info(f"Taxonomy seeded: {len(by_name)} skills, {alias_count} aliases, {embedded} embeddings")
    return SeedReport(skills=len(by_name), aliases=alias_count, embeddings=embedded)
