"""Pull credentials out of an ``Authorization`` header.

The scheme prefix is matched exactly (case-sensitive, one space) and the
remainder is returned verbatim, so ``"Bearer "`` yields an empty token.
"""

from __future__ import annotations

from typing import Mapping, Optional

from chirpy.service.errors import MissingCredentialError

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer "
API_KEY_PREFIX = "ApiKey "


def _authorization_value(headers: Mapping[str, str]) -> Optional[str]:
    value = headers.get(AUTHORIZATION_HEADER)
    if value is not None:
        return value
    # Plain dicts are case-sensitive; header names are not
    for name, candidate in headers.items():
        if name.lower() == AUTHORIZATION_HEADER.lower():
            return candidate
    return None


def _extract(headers: Mapping[str, str], prefix: str) -> str:
    value = _authorization_value(headers)
    if not value or not value.startswith(prefix):
        raise MissingCredentialError("missing Authorization header")
    return value[len(prefix):]


def extract_bearer(headers: Mapping[str, str]) -> str:
    return _extract(headers, BEARER_PREFIX)


def extract_api_key(headers: Mapping[str, str]) -> str:
    return _extract(headers, API_KEY_PREFIX)
