"""Nostr key loading, client construction and Blossom uploads.

The utils layer depends on [nostrcord.models][nostrcord.models] and on the
error taxonomy in [nostrcord.core.exceptions][nostrcord.core.exceptions]; it
never imports from ``nostrcord.services``.

Attributes:
    keys: Nostr key pair loading from environment variables (nsec1 bech32 or
        hex format) with Pydantic validation.
    protocol: nostr-sdk client factory and relay connection.
    blossom: Authorized BUD-02 blob uploads used to forward chat images.

Examples:
    ```python
    from nostrcord.utils.keys import KeysConfig
    from nostrcord.utils.protocol import connect_relays, create_client
    ```
"""
