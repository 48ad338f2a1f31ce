"""Bridge service configuration models.

Every field can be given in the YAML file; the settings the bridge has
always taken from the environment (``NOSTR_RELAYS``, ``DISCORD_TOKEN``,
``DISCORD_CHANNEL_ID``, ``SUBSCRIBERS_FILE``, ``METADATA_CACHE_FILE``) fill
in whatever the file leaves out. Secrets are only ever read from the
environment.

See Also:
    [Bridge][nostrcord.services.bridge.service.Bridge]: The service class
        that consumes these configurations.
    [BaseServiceConfig][nostrcord.core.base_service.BaseServiceConfig]:
        Base class providing ``restart_delay`` and ``metrics`` fields.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from nostrcord.core.base_service import BaseServiceConfig
from nostrcord.models._validation import validate_relay_url
from nostrcord.models.constants import (
    DEFAULT_QUEUE_SIZE,
    PROFILE_FETCH_TIMEOUT,
    PROFILE_LIFETIME,
)
from nostrcord.utils.keys import KeysConfig


ENV_RELAYS = "NOSTR_RELAYS"
ENV_DISCORD_TOKEN = "DISCORD_TOKEN"  # pragma: allowlist secret
ENV_CHANNEL_ID = "DISCORD_CHANNEL_ID"
ENV_SUBSCRIBERS_FILE = "SUBSCRIBERS_FILE"
ENV_METADATA_CACHE_FILE = "METADATA_CACHE_FILE"

_METADATA_CACHE_FILENAME = "metadata_cache.json"


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class DiscordConfig(BaseModel):
    """Chat gateway settings.

    Attributes:
        token_env: Environment variable holding the bot token.
        token: Bot token, loaded from ``token_env``.
        channel_id: The single text channel that is bridged.

    Warning:
        ``token`` is a ``SecretStr``; call ``get_secret_value()`` only when
        handing it to the client.
    """

    token_env: str = Field(default=ENV_DISCORD_TOKEN, min_length=1)
    token: SecretStr = Field(description="Bot token loaded from token_env (required)")
    channel_id: int = Field(gt=0)

    @model_validator(mode="before")
    @classmethod
    def _load_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "token" not in data:
            env_var = data.get("token_env", ENV_DISCORD_TOKEN)
            token = _env(env_var)
            if token is None:
                raise ValueError(f"{env_var} environment variable is required")
            data["token"] = token
        if "channel_id" not in data:
            channel_id = _env(ENV_CHANNEL_ID)
            if channel_id is None:
                raise ValueError(f"{ENV_CHANNEL_ID} environment variable is required")
            data["channel_id"] = channel_id
        return data


class StorageConfig(BaseModel):
    """File locations for the subscriber list and the profile cache.

    Either path may be ``None`` for memory-only operation. When only
    ``subscribers_file`` is set, the cache lives next to it as
    ``metadata_cache.json``.
    """

    subscribers_file: Path | None = Field(default=None)
    metadata_cache_file: Path | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _load_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "subscribers_file" not in data:
            data["subscribers_file"] = _env(ENV_SUBSCRIBERS_FILE)
        if "metadata_cache_file" not in data:
            data["metadata_cache_file"] = _env(ENV_METADATA_CACHE_FILE)
        return data

    @model_validator(mode="after")
    def _default_cache_beside_subscribers(self) -> StorageConfig:
        if self.metadata_cache_file is None and self.subscribers_file is not None:
            self.metadata_cache_file = self.subscribers_file.parent / _METADATA_CACHE_FILENAME
        return self


class MetadataConfig(BaseModel):
    """Profile cache freshness and lookup bounds."""

    lifetime: int = Field(
        default=PROFILE_LIFETIME,
        ge=60,
        description="Seconds a cached profile stays fresh",
    )
    fetch_timeout: float = Field(
        default=PROFILE_FETCH_TIMEOUT,
        ge=1.0,
        le=120.0,
        description="Upper bound in seconds for one profile lookup",
    )


class BlossomConfig(BaseModel):
    """Blossom media server used for chat attachments.

    Without a ``server``, attachments are not forwarded (the text still is).
    """

    server: str | None = Field(default=None)
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)
    max_size: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        le=100 * 1024 * 1024,
        description="Largest attachment uploaded, in bytes",
    )

    @field_validator("server")
    @classmethod
    def _validate_server(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Blossom server must use http:// or https://, got {v}")
        return v


class BridgeConfig(BaseServiceConfig, KeysConfig):
    """Configuration for the bridge service.

    Inherits key management from
    [KeysConfig][nostrcord.utils.keys.KeysConfig] for signing and
    decrypting private messages.

    Attributes:
        relays: Relay URLs to listen on and publish to.
        discord: Chat gateway settings.
        storage: Subscriber and cache file locations.
        metadata: Profile cache freshness settings.
        blossom: Attachment upload settings.
        queue_size: Capacity of each relay queue.
        connect_timeout: Seconds to wait for the initial relay connections.
    """

    relays: list[str] = Field(min_length=1)
    discord: DiscordConfig
    storage: StorageConfig = Field(default_factory=StorageConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    blossom: BlossomConfig = Field(default_factory=BlossomConfig)
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, ge=1, le=10_000)
    connect_timeout: float = Field(default=10.0, ge=1.0, le=120.0)

    @model_validator(mode="before")
    @classmethod
    def _load_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "relays" not in data:
            raw = _env(ENV_RELAYS)
            if raw is None:
                raise ValueError(f"relays must be configured or {ENV_RELAYS} must be set")
            data["relays"] = [url.strip() for url in raw.split(",") if url.strip()]
        data.setdefault("discord", {})
        return data

    @field_validator("relays")
    @classmethod
    def _validate_relays(cls, v: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for url in v:
            seen[validate_relay_url(url)] = None
        return list(seen)
