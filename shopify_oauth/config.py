from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar
from .exceptions import ApiConfigError

T = TypeVar('T')

DOCS_URL = 'https://github.com/sinechris/shopify-node-api'
DEFAULT_RATE_LIMIT_DELAY = 10.0
DEFAULT_BACKOFF = 35
DEFAULT_BACKOFF_DELAY = 1.0
DEFAULT_ERROR_RETRY_DELAY = 10.0
DEFAULT_TIMEOUT = 30.0

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


def load_env_file(env_path: Path) -> None:
    """Load KEY=value pairs into os.environ, keeping variables that are already set."""
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        k = k.strip(); v = v.strip().strip('"').strip("'")
        if not k:
            continue
        existing = os.environ.get(k)
        if existing is None or existing.strip() == '':
            os.environ[k] = v


def _env(name: str, required: bool = True) -> Optional[str]:
    val = os.getenv(name)
    if val is None or val.strip() == '':
        if required:
            raise ApiConfigError(f"Missing required environment variable: {name}")
        return None
    return val.strip()


def _env_as(name: str, cast: Callable[[str], T], default: T) -> T:
    raw = _env(name, required=False)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ApiConfigError(f"Invalid value for {name}: {raw!r}") from e


def _as_bool(raw: str) -> bool:
    low = raw.lower()
    if low in _TRUE:
        return True
    if low in _FALSE:
        return False
    raise ValueError(raw)


def _as_timeout(raw: str) -> Optional[float]:
    if raw.lower() == 'none':
        return None
    return float(raw)


@dataclass
class ClientConfig:
    """Settings owned by one client instance.

    Delays are in seconds. `access_token` is the only field expected to change
    after construction (set once by the token exchange).
    `max_rate_limit_attempts=None` keeps retrying 429 responses forever.
    """
    shop: str
    api_key: Optional[str] = None
    shared_secret: Optional[str] = None
    scope: Optional[str] = None
    redirect_uri: Optional[str] = None
    access_token: Optional[str] = None
    verbose: bool = True
    rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY
    backoff: int = DEFAULT_BACKOFF
    backoff_delay: float = DEFAULT_BACKOFF_DELAY
    error_retry_delay: float = DEFAULT_ERROR_RETRY_DELAY
    retry_errors: bool = False
    timeout: Optional[float] = DEFAULT_TIMEOUT
    max_rate_limit_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.shop or not str(self.shop).strip():
            raise ApiConfigError(
                'ClientConfig expects a shop name\n'
                f'Please see documentation at: {DOCS_URL}\n'
            )
        # anything but an explicit False keeps logging on
        self.verbose = self.verbose is not False
        if self.max_rate_limit_attempts is not None and self.max_rate_limit_attempts < 1:
            raise ApiConfigError('max_rate_limit_attempts must be >= 1 or None')

    @property
    def subdomain(self) -> str:
        return self.shop.strip().split('.')[0]

    @property
    def hostname(self) -> str:
        return f"{self.subdomain}.myshopify.com"

    @property
    def port(self) -> int:
        return 443

    @classmethod
    def from_env(cls, prefix: str = 'SHOPIFY_', env_file: Path | None = None) -> 'ClientConfig':
        if env_file is not None:
            load_env_file(env_file)
        return cls(
            shop=_env(prefix + 'SHOP'),  # type: ignore[arg-type]
            api_key=_env(prefix + 'API_KEY'),
            shared_secret=_env(prefix + 'SHARED_SECRET'),
            scope=_env(prefix + 'SCOPE', required=False),
            redirect_uri=_env(prefix + 'REDIRECT_URI', required=False),
            access_token=_env(prefix + 'ACCESS_TOKEN', required=False),
            verbose=_env_as(prefix + 'VERBOSE', _as_bool, True),
            rate_limit_delay=_env_as(prefix + 'RATE_LIMIT_DELAY', float, DEFAULT_RATE_LIMIT_DELAY),
            backoff=_env_as(prefix + 'BACKOFF', int, DEFAULT_BACKOFF),
            backoff_delay=_env_as(prefix + 'BACKOFF_DELAY', float, DEFAULT_BACKOFF_DELAY),
            error_retry_delay=_env_as(prefix + 'ERROR_RETRY_DELAY', float, DEFAULT_ERROR_RETRY_DELAY),
            retry_errors=_env_as(prefix + 'RETRY_ERRORS', _as_bool, False),
            timeout=_env_as(prefix + 'TIMEOUT', _as_timeout, DEFAULT_TIMEOUT),
        )
