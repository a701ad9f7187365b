"""Shopify OAuth2 Admin API client.

Usage example:
    from shopify_oauth import ShopifyAPI
    api = ShopifyAPI.from_env()
    api.get('/admin/shop.json', lambda err, body, headers: print(err or body))
"""
from .client import ShopifyAPI  # noqa: F401
from .config import ClientConfig, load_env_file  # noqa: F401
from .dispatcher import RequestDispatcher, RequestSpec, ResponseEnvelope  # noqa: F401
from .exceptions import ApiRequestError, ApiAuthError, ApiConfigError, ApiRateLimitError, ApiResponseError  # noqa: F401
from .signature import compute_signature, verify_signature  # noqa: F401
