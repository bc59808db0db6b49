from collections.abc import MutableMapping
from dataclasses import dataclass
import os
import random

import requests
import urllib3
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from src.httpwrap.errors import InvalidProxyURL

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/114.0.0.0 Safari/537.36 Edg/114.0.1823.37",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/114.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/113.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/112.0.0.0 Safari/537.36 OPR/98.0.0.0 (Edition beta)",
)

PROXY_SCHEMES = frozenset({"http", "https", "socks4", "socks4a", "socks5", "socks5h"})


@dataclass(slots=True)
class HttpConfig:
    """Client-level settings; None/0 timeout falls back to global or default."""

    timeout: float | None = None
    proxy: str | None = None
    allow_redirects: bool = False
    stop_when_context_done: bool = False


def get_optional_user_agents() -> tuple[str, ...]:
    return USER_AGENTS


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def ensure_user_agent(headers: MutableMapping[str, str]) -> str:
    """Set a random User-Agent unless one is present; return the one in effect."""
    for name, value in headers.items():
        if name.lower() == "user-agent":
            return value

    agent = random_user_agent()
    headers["User-Agent"] = agent
    return agent


def set_header(headers: MutableMapping[str, str], name: str, value: str) -> None:
    # plain dicts are case-sensitive; drop other spellings first
    for existing in [key for key in headers if key.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def parse_proxy_url(value: str) -> str:
    candidate = value.strip()
    try:
        parsed = parse_url(candidate)
    except LocationParseError as exc:
        raise InvalidProxyURL(value, str(exc)) from exc

    if not parsed.scheme or parsed.scheme.lower() not in PROXY_SCHEMES:
        raise InvalidProxyURL(value, f"unsupported scheme {parsed.scheme!r}")
    if not parsed.host:
        raise InvalidProxyURL(value, "missing host")

    return parsed.url


def proxy_mapping(proxy: str | None) -> dict[str, str]:
    # an empty mapping plus trust_env=False means a direct connection
    if proxy is None:
        return {}
    return {"http": proxy, "https": proxy}


def env_proxy() -> str | None:
    for name in ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"):
        value = os.getenv(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_session(verify_tls: bool = False) -> requests.Session:
    """
    Create the requests.Session backing one transport:
    - environment proxies/netrc ignored, proxies are chosen per request
    - TLS verification off unless asked for (and the urllib3 warning muted)
    - no retry adapter; failures surface on the first attempt
    """
    if not verify_tls:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    session: requests.Session = requests.Session()
    session.trust_env = False
    session.verify = verify_tls
    return session


def read_body(response: requests.Response, chunk_size: int = 1024) -> bytes:
    """Drain the whole body and release the connection."""
    result = bytearray()
    try:
        for chunk in response.iter_content(chunk_size=chunk_size):
            result.extend(chunk)
    finally:
        response.close()
    return bytes(result)
