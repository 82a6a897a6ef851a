"""Embedding backends."""

from .base import EmbedderBase, get_embedder

__all__ = ["EmbedderBase", "get_embedder"]
