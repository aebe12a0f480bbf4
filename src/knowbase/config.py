"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from knowbase.embedding.encoder import DEFAULT_MODELS

DEFAULT_DB_PATH = Path("data/knowbase.db")
DEFAULT_KNOWLEDGE_DIR = Path("config/knowledge")


def _resolve(path: Path, base_dir: Path | None) -> Path:
    if path.is_absolute() or base_dir is None:
        return path
    return base_dir / path


@dataclass(slots=True)
class AppConfig:
    db_path: Path = DEFAULT_DB_PATH
    knowledge_dir: Path = DEFAULT_KNOWLEDGE_DIR
    embedding_provider: str = "openai"
    model_name: str | None = None
    openai_api_key: str | None = None
    chunk_chars: int = 900
    embed_batch_size: int = 96
    id_batch_size: int = 500

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.knowledge_dir = Path(self.knowledge_dir)
        if self.embedding_provider not in DEFAULT_MODELS:
            raise ValueError(
                f"Unknown embedding provider {self.embedding_provider!r}; "
                f"expected one of {', '.join(sorted(DEFAULT_MODELS))}"
            )
        if self.model_name is None:
            self.model_name = DEFAULT_MODELS[self.embedding_provider]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "AppConfig":
        """Build a config from ``KNOWBASE_*`` variables; explicit overrides win."""
        env = os.environ if environ is None else environ
        values: dict = {}
        if env.get("KNOWBASE_DB_PATH"):
            values["db_path"] = Path(env["KNOWBASE_DB_PATH"])
        if env.get("KNOWBASE_KNOWLEDGE_DIR"):
            values["knowledge_dir"] = Path(env["KNOWBASE_KNOWLEDGE_DIR"])
        if env.get("KNOWBASE_EMBEDDING_PROVIDER"):
            values["embedding_provider"] = env["KNOWBASE_EMBEDDING_PROVIDER"]
        if env.get("KNOWBASE_MODEL"):
            values["model_name"] = env["KNOWBASE_MODEL"]
        if env.get("OPENAI_API_KEY"):
            values["openai_api_key"] = env["OPENAI_API_KEY"]
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        return _resolve(self.db_path, base_dir)

    def resolve_knowledge_dir(self, base_dir: Path | None = None) -> Path:
        return _resolve(self.knowledge_dir, base_dir)
