"""Shared CLI helpers for httpwrap command line tools."""
from __future__ import annotations

from collections.abc import Iterable

from src.common.http_utils import HttpConfig, env_proxy
from src.httpwrap.client import Client


def parse_keyvals(items: Iterable[str] | None, sep: str) -> dict[str, str]:
    """Convert sequences like ["key=value"] into a dictionary."""
    out: dict[str, str] = {}
    if not items:
        return out

    for item in items:
        if sep not in item:
            raise ValueError(f"Invalid format '{item}', expected KEY{sep}VALUE")
        key, value = item.split(sep, 1)
        out[key.strip()] = value.strip()

    return out


def build_cli_client(
    *,
    proxy: str | None,
    timeout: float | None,
    follow_redirects: bool,
) -> Client:
    """
    Instantiate a Client from common CLI flags.
    - proxy=None falls back to HTTP(S)_PROXY from the environment
    - proxy='' forces a direct connection
    """
    if proxy is None:
        proxy = env_proxy()
    elif not proxy.strip():
        proxy = None

    cfg = HttpConfig(
        timeout=timeout,
        proxy=proxy,
        allow_redirects=follow_redirects,
    )
    return Client.from_config(cfg)
