"""Client settings with environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

from tldw_chat.errors import ConfigurationError

ENV_PREFIX = "TLDW_"


class ClientSettings(BaseModel):
    """Connection and behaviour settings for ``ChatClient.from_settings``."""

    base_url: str
    api_key: str | None = None
    timeout_s: float = 60.0
    chat_path: str = "/api/v1/chat/completions"
    health_path: str = "/api/v1/health"
    # name registered in tldw_chat.reasoning
    reasoning_merge: str = "incremental"
    default_headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClientSettings":
        """Build settings from ``TLDW_*`` environment variables."""
        env = os.environ if environ is None else environ

        base_url = env.get(f"{ENV_PREFIX}BASE_URL", "").strip()
        if not base_url:
            raise ConfigurationError(f"{ENV_PREFIX}BASE_URL is not set")

        data: dict[str, object] = {"base_url": base_url}
        if env.get(f"{ENV_PREFIX}API_KEY"):
            data["api_key"] = env[f"{ENV_PREFIX}API_KEY"]
        if env.get(f"{ENV_PREFIX}REASONING_MERGE"):
            data["reasoning_merge"] = env[f"{ENV_PREFIX}REASONING_MERGE"]

        raw_timeout = env.get(f"{ENV_PREFIX}TIMEOUT_S")
        if raw_timeout:
            try:
                data["timeout_s"] = float(raw_timeout)
            except ValueError as exc:
                raise ConfigurationError(f"{ENV_PREFIX}TIMEOUT_S must be a number, got {raw_timeout!r}") from exc

        return cls.model_validate(data)
