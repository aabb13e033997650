"""
Loader configuration.

Settings come from ``LANGQUIZ_*`` environment variables (a ``.env`` file is
loaded by the CLI). Credentials missing from the environment are read from
``duo.json`` and ``db.json`` in the secrets directory.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .provider import DEFAULT_BASE_URL
from .store import DEFAULT_DATABASE
from .translation import DEFAULT_BATCH_SIZE

logger = logging.getLogger("langquiz-loader")


DEFAULT_COURSE_IDS = [
    "DUOLINGO_VI_EN",
    "DUOLINGO_EN_VI",
]
DEFAULT_CACHE_DIR = Path("out")
DEFAULT_SECRETS_DIR = Path("secrets")


class LoaderConfig(BaseModel):
    """Everything a loader run needs to know."""

    course_ids: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COURSE_IDS),
        min_length=1,
        description="Allow-list of course ids to load, in processing order",
    )
    cache_dir: Path = Field(default=DEFAULT_CACHE_DIR, description="Root of the response cache")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, description="Words per translate call")

    provider_url: str = Field(default=DEFAULT_BASE_URL, description="Course provider base URL")
    provider_user: str | None = None
    provider_password: str | None = None

    mongo_url: str | None = Field(default=None, description="MongoDB connection URL")
    mongo_user: str | None = None
    mongo_password: str | None = None
    database: str = Field(default=DEFAULT_DATABASE, description="Database holding the collections")
    words_collection: str = Field(default="words", description="Collection for translation records")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        secrets_dir: Path | None = None,
    ) -> "LoaderConfig":
        """Build the configuration from environment variables and secrets files.

        Args:
            environ: Variables to read, ``os.environ`` by default
            secrets_dir: Directory with ``duo.json``/``db.json``; defaults to
                ``LANGQUIZ_SECRETS_DIR`` or ``secrets``

        Raises:
            ConfigurationError: If a value is invalid or a secrets file is unreadable
        """
        env = os.environ if environ is None else environ
        secrets_dir = Path(secrets_dir or env.get("LANGQUIZ_SECRETS_DIR") or DEFAULT_SECRETS_DIR)

        duo = _read_secrets(secrets_dir / "duo.json")
        db = _read_secrets(secrets_dir / "db.json")

        values: dict[str, Any] = {
            "provider_user": env.get("LANGQUIZ_PROVIDER_USER") or duo.get("user"),
            "provider_password": env.get("LANGQUIZ_PROVIDER_PASSWORD") or duo.get("password"),
            "mongo_url": env.get("LANGQUIZ_MONGO_URL") or db.get("url"),
            "mongo_user": env.get("LANGQUIZ_MONGO_USER") or db.get("user"),
            "mongo_password": env.get("LANGQUIZ_MONGO_PASSWORD") or db.get("password"),
        }

        if env.get("LANGQUIZ_COURSE_IDS"):
            values["course_ids"] = [
                course_id.strip()
                for course_id in env["LANGQUIZ_COURSE_IDS"].split(",")
                if course_id.strip()
            ]
        optional = {
            "LANGQUIZ_CACHE_DIR": "cache_dir",
            "LANGQUIZ_BATCH_SIZE": "batch_size",
            "LANGQUIZ_PROVIDER_URL": "provider_url",
            "LANGQUIZ_DATABASE": "database",
            "LANGQUIZ_WORDS_COLLECTION": "words_collection",
        }
        for variable, name in optional.items():
            if env.get(variable):
                values[name] = env[variable]

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid loader configuration: {e}") from e

    def with_overrides(self, **overrides: Any) -> "LoaderConfig":
        """Return a copy with the given non-None values replaced and validated."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return LoaderConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid loader configuration: {e}") from e


def _read_secrets(path: Path) -> dict[str, Any]:
    """Read a JSON secrets file; a missing file yields an empty dict."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read secrets file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Secrets file {path} must contain a JSON object")
    logger.debug(f"Read secrets from {path}")
    return data


__all__ = [
    "LoaderConfig",
    "DEFAULT_COURSE_IDS",
    "DEFAULT_CACHE_DIR",
]
