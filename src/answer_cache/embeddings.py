import json
from collections.abc import Sequence

import numpy as np


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Args:
        v1: First vector.
        v2: Second vector, same dimension as v1.

    Returns:
        Similarity in [-1, 1]; 0.0 if either vector has zero magnitude.

    Raises:
        ValueError: If the dimensions differ.
    """
    a = np.asarray(v1, dtype=np.float64)
    b = np.asarray(v2, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions must match: {a.shape[0]} vs {b.shape[0]}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def vector_to_json(vector: Sequence[float]) -> str:
    """Serialize an embedding for storage."""
    return json.dumps([float(x) for x in vector])


def json_to_vector(raw: str) -> list[float]:
    """Deserialize an embedding written by vector_to_json."""
    return [float(x) for x in json.loads(raw)]
