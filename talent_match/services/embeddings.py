"""Ollama-backed embedding provider with bounded concurrency and retries."""
import asyncio
from typing import Dict, Optional

import numpy as np
import requests

from talent_match.models.settings import EmbeddingSettings
from talent_match.services.interfaces import EmbeddingProvider
from talent_match.utils.exceptions import ProviderUnavailableError, retry_with_logging
from talent_match.utils.logging_config import get_logger
from talent_match.utils.utils import ollama_embed

logger = get_logger(__name__)


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeds text through a local Ollama server.

    ``requests`` is blocking, so each call runs in a worker thread; a
    semaphore caps in-flight calls at ``settings.max_concurrent``.
    """

    def __init__(self, settings: Optional[EmbeddingSettings] = None):
        self.settings = settings or EmbeddingSettings()
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent)
        self._embed_with_retry = retry_with_logging(
            max_attempts=self.settings.retry_attempts,
            backoff_factor=self.settings.retry_backoff,
            exceptions=(requests.RequestException, ValueError),
            logger=logger,
        )(self._embed_once)

    @property
    def dimension(self) -> int:
        return self.settings.dimension

    async def _embed_once(self, text: str) -> np.ndarray:
        async with self._semaphore:
            return await asyncio.to_thread(
                ollama_embed,
                text,
                self.settings.model_name,
                self.settings.base_url,
                self.settings.timeout,
            )

    async def embed(self, text: str) -> np.ndarray:
        try:
            vector = await self._embed_with_retry(text)
        except (requests.RequestException, ValueError) as e:
            raise ProviderUnavailableError(
                f"Embedding request failed: {e}", provider="ollama", cause=e
            ) from e

        if vector.shape[0] != self.settings.dimension:
            raise ProviderUnavailableError(
                f"Embedding dimension {vector.shape[0]} does not match configured {self.settings.dimension}",
                provider="ollama",
                details={"model": self.settings.model_name},
            )
        return vector


class MemoizedEmbeddings:
    """Per-computation memo so one text is embedded at most once.

    Lives only for the duration of a single match; never shared between calls.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider
        self._vectors: Dict[str, np.ndarray] = {}

    async def get(self, text: str) -> np.ndarray:
        key = text.strip().lower()
        if key not in self._vectors:
            self._vectors[key] = await self.provider.embed(text)
        return self._vectors[key]
