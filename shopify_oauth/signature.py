"""OAuth callback signature check (legacy MD5 scheme).

The platform signs the redirect query as
    md5(shared_secret + ''.join(sorted('key=value' for every param except signature)))
Tokens are sorted as whole 'key=value' strings, not by key, so `a-=1` comes before
`a=z` although key `a` sorts before key `a-`. Non-string values are spelled the way
the platform's JavaScript signer concatenates them (`null`, `true`, `1`).
"""
from __future__ import annotations
import hashlib
import hmac
from typing import Any, Dict, Mapping

SIGNATURE_PARAM = 'signature'


def _token_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ','.join('' if v is None else _token_value(v) for v in value)
    return str(value)


def strip_signature(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of `params` without the signature entry. The input is left untouched."""
    return {k: v for k, v in params.items() if k != SIGNATURE_PARAM}


def compute_signature(params: Mapping[str, Any], shared_secret: str) -> str:
    tokens = sorted(f"{k}={_token_value(v)}" for k, v in strip_signature(params).items())
    payload = (shared_secret or '') + ''.join(tokens)
    return hashlib.md5(payload.encode('utf-8')).hexdigest()


def verify_signature(params: Mapping[str, Any], shared_secret: str) -> bool:
    provided = params.get(SIGNATURE_PARAM)
    if not isinstance(provided, str) or not provided:
        return False
    expected = compute_signature(params, shared_secret)
    return hmac.compare_digest(expected.encode('ascii'), provided.encode('utf-8'))
