"""
Unit tests for models.profile module.

Tests:
- best_name preference order and identity fallback
- is_nameless and is_stale
- Profile.empty() and Profile.from_attributes()
- to_dict()/from_dict() records used by the cache file
"""

import pytest

from nostrcord.models import Profile, ProfileAttributes
from nostrcord.models.constants import PROFILE_LIFETIME


class TestBestName:
    """Display name resolution."""

    def test_display_name_wins(self, alice):
        profile = Profile(alice, name="alice", display_name="Alice A.", nip05="a@x.com")
        assert profile.best_name == "Alice A."

    def test_name_when_display_name_blank(self, alice):
        profile = Profile(alice, name="alice", display_name="   ")
        assert profile.best_name == "alice"

    def test_nip05_when_names_missing(self, alice):
        profile = Profile(alice, nip05="alice@example.com")
        assert profile.best_name == "alice@example.com"

    def test_identity_fallback(self, alice):
        profile = Profile(alice)
        assert profile.best_name == alice.short()

    def test_empty_strings_fall_back(self, alice):
        profile = Profile(alice, name="", display_name="", nip05="")
        assert profile.best_name == alice.short()

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"name": ""},
            {"display_name": " "},
            {"nip05": ""},
            {"picture": "https://example.com/p.png"},
            {"name": "n"},
        ],
    )
    def test_never_empty(self, alice, fields):
        assert Profile(alice, **fields).best_name


class TestStaleness:
    """is_stale and is_nameless."""

    def test_fresh_within_lifetime(self, alice):
        profile = Profile(alice, last_updated=1000)
        assert not profile.is_stale(PROFILE_LIFETIME, now=1000 + PROFILE_LIFETIME)

    def test_stale_after_lifetime(self, alice):
        profile = Profile(alice, last_updated=1000)
        assert profile.is_stale(PROFILE_LIFETIME, now=1001 + PROFILE_LIFETIME)

    def test_never_fetched_is_stale(self, alice):
        assert Profile(alice).is_stale()

    def test_nameless(self, alice):
        assert Profile(alice, nip05="a@b.c").is_nameless
        assert not Profile(alice, name="alice").is_nameless
        assert not Profile(alice, display_name="Alice").is_nameless


class TestFactories:
    """Profile.empty() and Profile.from_attributes()."""

    def test_empty(self, alice):
        profile = Profile.empty(alice, now=1234)
        assert profile.identity == alice
        assert profile.name is None
        assert profile.last_updated == 1234

    def test_empty_defaults_to_now(self, alice):
        assert Profile.empty(alice).last_updated > 0

    def test_from_attributes(self, alice):
        attrs = ProfileAttributes(
            name="alice", display_name="Alice", nip05="a@b.c", picture="https://p", about="hi"
        )
        profile = Profile.from_attributes(alice, attrs, now=99)
        assert profile.name == "alice"
        assert profile.display_name == "Alice"
        assert profile.nip05 == "a@b.c"
        assert profile.picture == "https://p"
        assert profile.about == "hi"
        assert profile.last_updated == 99


class TestValidation:
    """Constructor validation."""

    def test_identity_type(self):
        with pytest.raises(TypeError):
            Profile("npub1...")  # type: ignore[arg-type]

    def test_negative_timestamp(self, alice):
        with pytest.raises(ValueError):
            Profile(alice, last_updated=-1)

    def test_null_byte(self, alice):
        with pytest.raises(ValueError):
            Profile(alice, name="a\x00b")


class TestSerialization:
    """Cache file records."""

    def test_to_dict_keys(self, named_profile):
        data = named_profile.to_dict()
        assert data["pubkey"] == named_profile.identity.to_bech32()
        assert data["name"] == "alice"
        assert data["display_name"] == "Alice"
        assert data["last_updated"] == 1_700_000_000

    def test_from_dict(self, named_profile):
        assert Profile.from_dict(named_profile.to_dict()) == named_profile

    def test_from_dict_accepts_hex_pubkey(self, alice):
        profile = Profile.from_dict({"pubkey": alice.hex, "name": "x"})
        assert profile.identity == alice
        assert profile.last_updated == 0

    def test_from_dict_missing_pubkey(self):
        with pytest.raises(ValueError):
            Profile.from_dict({"name": "x"})

    def test_from_dict_bad_field_type(self, alice):
        with pytest.raises(TypeError):
            Profile.from_dict({"pubkey": alice.hex, "name": 42})
