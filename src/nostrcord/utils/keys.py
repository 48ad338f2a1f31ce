"""Nostr key loading for the bridge identity.

The bridge signs and decrypts with a single Nostr key pair, read from an
environment variable (``nsec1`` bech32 or 64-char hex).

Warning:
    Private keys must **never** be stored in configuration files, source
    code, or logged. Pass them through the process environment (for
    example a container ``env_file`` that is not committed).

Note:
    Keys are loaded eagerly at config validation time via
    [KeysConfig][nostrcord.utils.keys.KeysConfig]'s model validator, so a
    missing or malformed key stops the process at startup rather than at the
    first DM.

Examples:
    ```python
    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    print(keys.public_key().to_bech32())
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance (private key plus derived public key).

    Raises:
        ValueError: If the variable is unset or empty, or the key is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    try:
        return Keys.parse(value.strip())
    except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
        raise ValueError(f"{env_var} is not a valid Nostr private key: {e}") from None


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys`` instance.

    Warning:
        ``keys`` holds a live private key. Never dump this model to logs or
        files. ``arbitrary_types_allowed`` is required because
        ``nostr_sdk.Keys`` is a Rust-backed FFI type.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for the bridge's private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            data = {**data, "keys": load_keys_from_env(env_var)}
        return data
