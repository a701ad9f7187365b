from __future__ import annotations
import json
import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple
from requests.structures import CaseInsensitiveDict
from .config import ClientConfig
from .exceptions import ApiRateLimitError, ApiResponseError
from .transport import NETWORK_ERRORS, RawResponse, RequestsTransport, Transport

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = 'X-Shopify-Shop-Api-Call-Limit'
ACCESS_TOKEN_HEADER = 'X-Shopify-Access-Token'
BODY_METHODS = ('POST', 'PUT')

Callback = Callable[[Optional[BaseException], Any, Optional[Mapping[str, str]]], None]


@dataclass
class RequestSpec:
    """One outbound call. `retried` caps network-error retries at a single extra attempt."""
    endpoint: str
    method: str = 'GET'
    data: Any = None
    callback: Optional[Callback] = None
    retried: bool = False

    def __post_init__(self) -> None:
        self.method = (self.method or 'GET').upper()
        if not self.endpoint.startswith('/'):
            self.endpoint = '/' + self.endpoint


@dataclass
class ResponseEnvelope:
    error: Optional[BaseException] = None
    body: Any = None
    headers: Optional[CaseInsensitiveDict] = None
    status: Optional[int] = None
    attempts: int = 0


class RequestDispatcher:
    """Sends RequestSpecs to the shop and applies the delay policies.

    Three independent waits can happen per spec:
      - 429: wait `rate_limit_delay` and send the same spec again. There is no cap
        unless `max_rate_limit_attempts` is set, so a shop that keeps answering 429
        keeps the caller waiting forever.
      - call limit header at or above `backoff` on a 200: wait `backoff_delay`
        before completing, the response is kept.
      - network error with `retry_errors`: wait `error_retry_delay` and send once more.

    Each dispatch gets its own daemon thread unless an executor is passed in, so a
    chain stuck waiting on 429s never holds back unrelated requests.
    """

    def __init__(self, config: ClientConfig, transport: Transport | None = None,
                 sleep: Callable[[float], None] = time.sleep,
                 executor: Executor | None = None):
        self.config = config
        self.transport = transport or RequestsTransport()
        self.sleep = sleep
        self.executor = executor
        self._threads: set = set()
        self._lock = threading.Lock()

    def _log(self, msg: str, *args: Any) -> None:
        if self.config.verbose:
            logger.info(msg, *args)

    def url_for(self, endpoint: str) -> str:
        host, port = self.config.hostname, self.config.port
        if port == 443:
            return f"https://{host}{endpoint}"
        return f"https://{host}:{port}{endpoint}"

    def build_request(self, spec: RequestSpec) -> Tuple[str, dict, Optional[bytes]]:
        headers = {'Content-Type': 'application/json'}
        if self.config.access_token:
            headers[ACCESS_TOKEN_HEADER] = self.config.access_token
        body = None
        if spec.method in BODY_METHODS or (spec.method == 'DELETE' and spec.data is not None):
            body = json.dumps(spec.data, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
            headers['Content-Length'] = str(len(body))
        return self.url_for(spec.endpoint), headers, body

    def dispatch(self, spec: RequestSpec) -> Future:
        """Run `spec` in the background and hand the outcome to `spec.callback`.

        The callback gets `(error, body, headers)`. The returned future resolves to
        the ResponseEnvelope; an exception raised by the callback itself ends up in
        the future.
        """
        if self.executor is not None:
            return self.executor.submit(self._run, spec)
        fut: Future = Future()
        thread = threading.Thread(target=self._run_into, args=(spec, fut),
                                  name=f"shopify-dispatch {spec.method} {spec.endpoint}", daemon=True)
        with self._lock:
            self._threads.add(thread)
        thread.start()
        return fut

    def _run_into(self, spec: RequestSpec, fut: Future) -> None:
        try:
            if not fut.set_running_or_notify_cancel():
                return
            try:
                fut.set_result(self._run(spec))
            except Exception as e:
                fut.set_exception(e)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())

    def _run(self, spec: RequestSpec) -> ResponseEnvelope:
        try:
            envelope = self.execute(spec)
        except Exception as e:
            if self.config.verbose:
                logger.exception('unexpected failure on %s %s', spec.method, spec.endpoint)
            envelope = ResponseEnvelope(error=e)
        if spec.callback is not None:
            spec.callback(envelope.error, envelope.body, envelope.headers)
        return envelope

    def execute(self, spec: RequestSpec) -> ResponseEnvelope:
        """Blocking form of dispatch: loop until a final outcome, return it."""
        try:
            url, headers, body = self.build_request(spec)
        except (TypeError, ValueError) as e:
            return ResponseEnvelope(error=e)

        attempts = 0
        rate_limited = 0
        while True:
            attempts += 1
            try:
                raw = self.transport.send(spec.method, url, headers, body, self.config.timeout)
            except NETWORK_ERRORS as e:
                self._log('Request Error: %s', e)
                if self.config.retry_errors and not spec.retried:
                    delay = self.config.error_retry_delay
                    self._log('retrying once in %s seconds', delay)
                    spec.retried = True
                    self.sleep(delay)
                    continue
                return ResponseEnvelope(error=e, attempts=attempts)

            self._log_response(raw)

            if raw.status_code == 429:
                rate_limited += 1
                cap = self.config.max_rate_limit_attempts
                if cap is not None and rate_limited >= cap:
                    err = ApiRateLimitError(f"Rate limit hit (429) {rate_limited} times on {spec.method} {spec.endpoint}")
                    return ResponseEnvelope(error=err, headers=raw.headers, status=429, attempts=attempts)
                delay = self.config.rate_limit_delay
                self._log('rate limited, sending again in %s seconds', delay)
                # a fresh chain after 429 gets its own network retry
                spec.retried = False
                self.sleep(delay)
                continue

            delay = self.backoff_delay_for(raw)
            if delay:
                self._log('call limit reached, delaying response by %s seconds', delay)
                self.sleep(delay)
            return self.interpret(raw, attempts)

    def _log_response(self, raw: RawResponse) -> None:
        if not self.config.verbose:
            return
        self._log('STATUS: %s', raw.status_code)
        self._log('HEADERS: %s', dict(raw.headers))
        if CALL_LIMIT_HEADER in raw.headers:
            self._log('API_LIMIT: %s', raw.headers[CALL_LIMIT_HEADER])
        self._log('BODY: %s', raw.text)

    def backoff_delay_for(self, raw: RawResponse) -> float:
        if raw.status_code != 200 or CALL_LIMIT_HEADER not in raw.headers:
            return 0
        try:
            used = int(raw.headers[CALL_LIMIT_HEADER].split('/')[0].strip())
        except ValueError:
            self._log('unreadable call limit header: %r', raw.headers[CALL_LIMIT_HEADER])
            return 0
        if used >= self.config.backoff:
            return self.config.backoff_delay
        return 0

    @staticmethod
    def interpret(raw: RawResponse, attempts: int = 1) -> ResponseEnvelope:
        envelope = ResponseEnvelope(body={}, headers=raw.headers, status=raw.status_code, attempts=attempts)
        # Shopify sometimes answers with a body of only spaces
        if not raw.text or raw.text.strip() == '':
            return envelope
        try:
            data = json.loads(raw.text)
        except (ValueError, RecursionError) as e:
            envelope.error = e
            return envelope
        envelope.body = data
        if isinstance(data, dict) and ('error' in data or 'errors' in data):
            envelope.error = ApiResponseError(data.get('error') or data.get('errors'), raw.status_code)
        return envelope

    def shutdown(self, wait: bool = True) -> None:
        """Wait for in-flight dispatches. An injected executor is left to its owner."""
        if not wait:
            return
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join()
