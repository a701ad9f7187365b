from __future__ import annotations
import logging
import time
from concurrent.futures import Future
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote
from .config import DOCS_URL, ClientConfig
from .dispatcher import Callback, RequestDispatcher, RequestSpec, ResponseEnvelope
from .exceptions import ApiAuthError, ApiConfigError, ApiRequestError
from .signature import verify_signature
from .transport import Transport

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = '/admin/oauth/access_token'


def _settled(callback: Callback, error: BaseException) -> Future:
    """Report `error` to `callback` without touching the network, as a finished future."""
    fut: Future = Future()
    try:
        callback(error, None, None)
    except Exception as e:
        fut.set_exception(e)
    else:
        fut.set_result(ResponseEnvelope(error=error))
    return fut


class ShopifyAPI:
    """Shopify Admin API client: OAuth2 handshake plus authenticated JSON calls.

    Every call is asynchronous: it returns a Future and reports to the given
    callback as `callback(error, body, headers)`.
    """

    def __init__(self, config: ClientConfig | None = None, transport: Transport | None = None,
                 sleep: Callable[[float], None] = time.sleep, **overrides: Any):
        if config is None and not overrides:
            raise ApiConfigError(
                'ShopifyAPI expects a config object\n'
                f'Please see documentation at: {DOCS_URL}\n'
            )
        self.config = config if config is not None else ClientConfig(**overrides)
        self.dispatcher = RequestDispatcher(self.config, transport=transport, sleep=sleep)

    @classmethod
    def from_env(cls, **kwargs: Any) -> 'ShopifyAPI':
        return cls(ClientConfig.from_env(), **kwargs)

    def hostname(self) -> str:
        return self.config.hostname

    def port(self) -> int:
        return self.config.port

    def build_auth_url(self) -> str:
        return (
            f"https://{self.hostname()}/admin/oauth/authorize?"
            f"client_id={quote(self.config.api_key or '', safe='')}"
            f"&scope={quote(self.config.scope or '', safe=',')}"
            f"&redirect_uri={quote(self.config.redirect_uri or '', safe='')}"
        )

    def set_access_token(self, token: Optional[str]) -> None:
        self.config.access_token = token

    def is_valid_signature(self, params: Mapping[str, Any]) -> bool:
        return verify_signature(params, self.config.shared_secret or '')

    def exchange_temporary_token(self, query_params: Mapping[str, Any], callback: Callback) -> Future:
        """Trade the `code` from the OAuth redirect for a permanent access token.

        `callback` gets `(error, body, headers)` like any other call. A bad
        signature is reported to it right away and nothing is sent.
        """
        if not self.is_valid_signature(query_params):
            return _settled(callback, ApiAuthError('Signature is not authentic!'))

        data = {
            'client_id': self.config.api_key,
            'client_secret': self.config.shared_secret,
            'code': query_params.get('code'),
        }

        def _on_token(err: Optional[BaseException], body: Any, headers: Any) -> None:
            if err is not None:
                wrapped = ApiRequestError(f"Token exchange failed: {err}")
                wrapped.__cause__ = err
                callback(wrapped, body, headers)
                return
            self.set_access_token(body.get('access_token') if isinstance(body, dict) else None)
            if self.config.verbose:
                logger.info('access token acquired for %s', self.hostname())
            callback(None, body, headers)

        return self.make_request(TOKEN_ENDPOINT, 'POST', data, _on_token)

    def make_request(self, endpoint: str, method: str = 'GET', data: Any = None,
                     callback: Optional[Callback] = None, retry: bool = False) -> Future:
        spec = RequestSpec(endpoint, method, data, callback, retried=retry)
        return self.dispatcher.dispatch(spec)

    def request(self, endpoint: str, method: str = 'GET', data: Any = None) -> ResponseEnvelope:
        """Blocking call with the same retry and backoff rules; no callback involved."""
        return self.dispatcher.execute(RequestSpec(endpoint, method, data))

    def get(self, endpoint: str, data: Any = None, callback: Optional[Callback] = None) -> Future:
        if callable(data) and callback is None:
            callback, data = data, None
        return self.make_request(endpoint, 'GET', data, callback)

    def post(self, endpoint: str, data: Any = None, callback: Optional[Callback] = None) -> Future:
        return self.make_request(endpoint, 'POST', data, callback)

    def put(self, endpoint: str, data: Any = None, callback: Optional[Callback] = None) -> Future:
        return self.make_request(endpoint, 'PUT', data, callback)

    def delete(self, endpoint: str, data: Any = None, callback: Optional[Callback] = None) -> Future:
        if callable(data) and callback is None:
            callback, data = data, None
        return self.make_request(endpoint, 'DELETE', data, callback)

    def close(self) -> None:
        self.dispatcher.shutdown()
        close = getattr(self.dispatcher.transport, 'close', None)
        if close is not None:
            close()

    def __enter__(self) -> 'ShopifyAPI':
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
