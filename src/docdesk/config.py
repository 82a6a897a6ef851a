"""Configuration management for docdesk."""

import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "db_path": "~/.docdesk/docdesk.sqlite",
    "uploads_path": "~/.docdesk/uploads",
    "embedding_backend": "ollama",
    "vector_backend": "chromadb",
    "ollama": {"base_url": "http://127.0.0.1:11434", "model": "embeddinggemma:latest", "timeout": 30.0},
    "chroma": {"base_url": "http://127.0.0.1:8000", "collection": "document_chunks", "timeout": 10.0},
    "local_embedding_model": "sentence-transformers/all-MiniLM-L6-v2",
    "chunking": {"chunk_size": 260, "overlap": 80},
    "ingest": {"embed_workers": 4},
    "search": {"default_limit": 20},
    "log_level": "INFO",
}

# env var -> (section, key); section None means top level
ENV_OVERRIDES = {
    "OLLAMA_BASE_URL": ("ollama", "base_url"),
    "OLLAMA_EMBEDDING_MODEL": ("ollama", "model"),
    "CHROMA_BASE_URL": ("chroma", "base_url"),
    "CHROMA_COLLECTION": ("chroma", "collection"),
    "DOCDESK_DB_PATH": (None, "db_path"),
}


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".docdesk" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = _copy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    for env_key, (section, key) in ENV_OVERRIDES.items():
        if value := os.environ.get(env_key):
            target = cfg.setdefault(section, {}) if section else cfg
            target[key] = value

    for key in ("db_path", "uploads_path"):
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
