"""Tests for Authorization header extraction."""

import pytest

from chirpy.service.credentials import extract_api_key, extract_bearer
from chirpy.service.errors import MissingCredentialError


class TestExtractBearer:
    def test_bearer_token_returned(self):
        assert extract_bearer({"Authorization": "Bearer abc123"}) == "abc123"

    def test_lowercase_scheme_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_bearer({"Authorization": "bearer abc123"})

    def test_missing_header_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_bearer({})

    def test_empty_header_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_bearer({"Authorization": ""})

    def test_prefix_only_yields_empty_token(self):
        assert extract_bearer({"Authorization": "Bearer "}) == ""

    def test_remainder_is_not_trimmed(self):
        assert extract_bearer({"Authorization": "Bearer  abc "}) == " abc "

    def test_header_name_is_case_insensitive(self):
        assert extract_bearer({"authorization": "Bearer abc123"}) == "abc123"

    def test_other_scheme_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_bearer({"Authorization": "ApiKey abc123"})


class TestExtractApiKey:
    def test_api_key_returned(self):
        assert extract_api_key({"Authorization": "ApiKey my-key"}) == "my-key"

    def test_bearer_scheme_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_api_key({"Authorization": "Bearer my-key"})

    def test_missing_header_rejected(self):
        with pytest.raises(MissingCredentialError):
            extract_api_key({"Content-Type": "application/json"})
