import os
from typing import List, Sequence, Union

import numpy as np
import requests
from dotenv import load_dotenv

load_dotenv()

OLLAMA = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBED_MODEL = os.getenv("EMBED_MODEL", "nomic-embed-text")


def ollama_embed(
    texts: Union[str, List[str]],
    model: str = None,
    base_url: str = None,
    timeout: float = 30,
):
    """Call Ollama's embed endpoint for one text or a batch."""
    url = f"{base_url or OLLAMA}/api/embed"
    resp = requests.post(url, json={"model": model or EMBED_MODEL, "input": texts}, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()
    embeddings = data.get("embeddings") or []
    if not embeddings:
        raise ValueError(f"Ollama returned no embeddings for model {model or EMBED_MODEL}")
    if isinstance(texts, str):
        return np.array(embeddings[0], dtype=np.float32)
    return np.array(embeddings, dtype=np.float32)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape} vs {vb.shape}")
    den = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if den == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / den


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine of one query vector against every row of matrix."""
    q = np.asarray(query, dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


def clamp01(x: float) -> float:
    if x != x:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(x)))
