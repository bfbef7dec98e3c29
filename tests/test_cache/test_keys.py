"""Tests for cache key generation."""

import pytest

from dossier.cache import component_key, extract_domain, generate_company_key, generate_person_key
from dossier.cache.keys import is_persistent, namespace, normalize_identifier


class TestKeys:
    """Tests for key normalization."""

    @pytest.mark.parametrize("spelling", ["Acme, Inc.", "ACME INC", "  acme   inc ", "Acme Inc!"])
    def test_company_spellings_share_a_key(self, spelling):
        """Cosmetic differences collapse to one key."""
        assert generate_company_key(spelling) == "company:acme-inc"

    def test_person_key_includes_company(self):
        """The same name at two companies gets two keys."""
        assert generate_person_key("Jane Doe", "Acme") == "person:jane-doe:acme"
        assert generate_person_key("Jane Doe", "Globex") != generate_person_key("Jane Doe", "Acme")
        assert generate_person_key("Jane Doe") == "person:jane-doe"

    def test_component_keys_are_not_persistent(self):
        """Sub-fetch keys live in memory only."""
        key = component_key("tech", "acme.com")

        assert key == "primary:tech:acmecom"
        assert namespace(key) == "primary"
        assert not is_persistent(key)
        assert is_persistent("company:acme")

    def test_normalize_identifier_empty(self):
        """Empty input normalizes to an empty string."""
        assert normalize_identifier("") == ""
        assert normalize_identifier("--") == ""


class TestExtractDomain:
    """Tests for deterministic domain derivation."""

    def test_url(self):
        """URLs reduce to their host without www."""
        assert extract_domain("https://www.acme.com/about") == "acme.com"

    def test_bare_domain(self):
        """Bare domains are lower-cased."""
        assert extract_domain("Acme.IO") == "acme.io"

    def test_company_name(self):
        """Names become a .com guess."""
        assert extract_domain("Acme Corp") == "acmecorp.com"
