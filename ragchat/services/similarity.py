import json
import logging
import numpy as np
from ragchat.errors import LengthMismatch

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


def cosine(a, b):
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.
    Raises LengthMismatch when the lengths differ.
    """
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise LengthMismatch(a.size, b.size)

    denom = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    sim = float(np.dot(a, b)) / denom
    # float32 rounding can push |sim| a hair past 1
    return max(-1.0, min(1.0, sim))


def decode_embedding(raw):
    """
    Decode a stored embedding into a 1-D float32 vector.

    Accepts a native array (list), a JSON-encoded string, or raw float32 bytes.
    Raises ValueError for anything else.
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        vec = np.frombuffer(bytes(raw), dtype=np.float32)
    else:
        if isinstance(raw, str):
            raw = json.loads(raw)
        if not isinstance(raw, (list, tuple, np.ndarray)):
            raise ValueError(f"unsupported embedding type {type(raw).__name__}")
        vec = np.asarray(raw, dtype=np.float32)

    if vec.ndim != 1 or vec.size == 0:
        raise ValueError("embedding must be a non-empty flat vector")
    if not np.all(np.isfinite(vec)):
        raise ValueError("embedding contains non-finite values")
    return vec


def top_k(query_vec, chunks, k=DEFAULT_TOP_K):
    """
    Rank chunks by cosine similarity to query_vec.

    Args:
        query_vec: query embedding
        chunks: iterable of dicts with id, content, embedding
        k: number of results to return

    Returns:
        list of {content, similarity} dicts, best first. Chunks whose embedding
        cannot be decoded or has the wrong length score 0. Ties keep input order.
    """
    query_vec = np.asarray(query_vec, dtype=np.float32)

    results = []
    for chunk in chunks:
        try:
            sim = cosine(query_vec, decode_embedding(chunk["embedding"]))
        except LengthMismatch as e:
            logger.warning(f"similarity: chunk {chunk.get('id')} skipped: {e.message}")
            sim = 0.0
        except (ValueError, TypeError) as e:
            logger.warning(f"similarity: chunk {chunk.get('id')} has undecodable embedding: {e}")
            sim = 0.0
        results.append({
            "content": chunk["content"],
            "similarity": sim,
        })

    # list.sort is stable, so equal scores stay in input order
    results.sort(key=lambda x: x["similarity"], reverse=True)
    return results[:k]
