"""Vector index backends."""

from .base import VectorIndexBase, get_vector_index

__all__ = ["VectorIndexBase", "get_vector_index"]
