from __future__ import annotations
from typing import Any, List
import pytest
from requests.structures import CaseInsensitiveDict
from shopify_oauth.config import ClientConfig
from shopify_oauth.transport import RawResponse


def response(status: int = 200, text: str = '{}', headers: dict | None = None) -> RawResponse:
    return RawResponse(status, CaseInsensitiveDict(headers or {}), text)


class FakeTransport:
    """Replays scripted outcomes: a RawResponse is returned, an exception is raised."""

    def __init__(self, *outcomes: Any):
        self.outcomes: List[Any] = list(outcomes)
        self.calls: List[dict] = []

    def send(self, method, url, headers, body, timeout):
        self.calls.append({'method': method, 'url': url, 'headers': dict(headers), 'body': body, 'timeout': timeout})
        if not self.outcomes:
            raise AssertionError('unexpected request: ' + url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def config():
    return ClientConfig(
        shop='my-shop.myshopify.com',
        api_key='key123',
        shared_secret='hush',
        scope='read_products,write_orders',
        redirect_uri='https://app.example.com/callback',
        verbose=False,
    )


@pytest.fixture
def sleep():
    return RecordingSleep()
