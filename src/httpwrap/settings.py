"""
Process-wide timeout/proxy overrides.

The global proxy and global timeout outrank every Client's own settings; the
default timeout is the last resort. Each group has its own lock so a setter
never blocks the others, and a Client never holds its own lock while waiting
on one of these.
"""
from __future__ import annotations

import logging
import threading

from src.common.http_utils import parse_proxy_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0  # seconds


class GlobalSettings:
    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._proxy_lock = threading.Lock()
        self._proxy: str | None = None
        self._proxy_enabled = False

        self._timeout_lock = threading.Lock()
        self._timeout = 0.0
        self._timeout_enabled = False

        self._default_lock = threading.Lock()
        self._default_timeout = default_timeout

    def set_global_proxy(self, value: str) -> None:
        """
        '' (after stripping) disables the override. Anything else must parse
        as a proxy URL; on InvalidProxyURL the previous state is kept.
        """
        value = value.strip()
        if not value:
            with self._proxy_lock:
                self._proxy = None
                self._proxy_enabled = False
            logger.debug("global proxy disabled")
            return

        proxy = parse_proxy_url(value)
        with self._proxy_lock:
            self._proxy = proxy
            self._proxy_enabled = True
        logger.debug("global proxy set to %s", proxy)

    def set_global_timeout(self, value: float) -> None:
        if value > 0:
            with self._timeout_lock:
                self._timeout = value
                self._timeout_enabled = True
            logger.debug("global timeout set to %ss", value)
            return

        default = self.default_timeout
        with self._timeout_lock:
            self._timeout = default
            self._timeout_enabled = False
        logger.debug("global timeout disabled")

    def set_default_timeout(self, value: float) -> None:
        if value <= 0:
            return
        with self._default_lock:
            self._default_timeout = value
        logger.debug("default timeout set to %ss", value)

    def proxy_state(self) -> tuple[bool, str | None]:
        with self._proxy_lock:
            return self._proxy_enabled, self._proxy

    def timeout_state(self) -> tuple[bool, float]:
        with self._timeout_lock:
            return self._timeout_enabled, self._timeout

    @property
    def default_timeout(self) -> float:
        with self._default_lock:
            return self._default_timeout

    def reset(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        with self._proxy_lock:
            self._proxy = None
            self._proxy_enabled = False
        with self._timeout_lock:
            self._timeout = 0.0
            self._timeout_enabled = False
        with self._default_lock:
            self._default_timeout = default_timeout


settings = GlobalSettings()


def set_global_proxy(value: str) -> None:
    settings.set_global_proxy(value)


def set_global_timeout(value: float) -> None:
    settings.set_global_timeout(value)


def set_default_timeout(value: float) -> None:
    settings.set_default_timeout(value)


def get_default_timeout() -> float:
    return settings.default_timeout
