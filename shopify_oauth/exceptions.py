from __future__ import annotations
from typing import Any, Dict


class ApiRequestError(Exception):
    """Generic API request error (anything not otherwise classified)."""

class ApiAuthError(ApiRequestError):
    """Authentication failure (callback signature mismatch)."""

class ApiConfigError(ApiRequestError):
    """Missing or malformed client configuration."""

class ApiRateLimitError(ApiRequestError):
    """Rate limiting (429) still in effect after the configured attempt cap."""

class ApiResponseError(ApiRequestError):
    """The platform answered with an `error`/`errors` field in the JSON body."""

    def __init__(self, error: Any, code: int | None):
        super().__init__(f"Shopify error {code}: {error}")
        self.error = error
        self.code = code

    def as_dict(self) -> Dict[str, Any]:
        return {'error': self.error, 'code': self.code}

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ApiResponseError):
            return self.as_dict() == other.as_dict()
        if isinstance(other, dict):
            return self.as_dict() == other
        return NotImplemented

    __hash__ = Exception.__hash__
