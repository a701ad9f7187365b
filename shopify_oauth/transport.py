from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol
import requests
from requests.structures import CaseInsensitiveDict

# Errors that mean no response was received at all.
NETWORK_ERRORS = (requests.RequestException, OSError)


@dataclass
class RawResponse:
    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    text: str = ''


class Transport(Protocol):
    def send(self, method: str, url: str, headers: Mapping[str, str], body: Optional[bytes], timeout: Optional[float]) -> RawResponse:
        """Send one request and return the fully read response, or raise a network error."""
        ...


class RequestsTransport:
    """HTTPS transport backed by a requests.Session. No retries happen at this level."""

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def send(self, method: str, url: str, headers: Mapping[str, str], body: Optional[bytes], timeout: Optional[float]) -> RawResponse:
        resp = self.session.request(method, url, headers=dict(headers), data=body, timeout=timeout)
        return RawResponse(resp.status_code, CaseInsensitiveDict(resp.headers), resp.text)

    def close(self) -> None:
        self.session.close()
