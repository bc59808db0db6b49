"""
Thread-safe request dispatch with layered timeout/proxy configuration.

Precedence, highest first: per-call Options > global override (settings) >
Client attributes > default timeout.

Every transport created here sends with TLS certificate verification turned
off. That is intentional (the client is meant for proxies that intercept TLS
and for targets with self-signed certificates) and it means no guarantee about
the identity of the server on the other end.
"""
from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
import logging
import threading
from types import TracebackType
from typing import Any

import requests

from src.common.http_utils import HttpConfig, ensure_user_agent, parse_proxy_url, set_header
from src.httpwrap.context import CancelContext
from src.httpwrap.precedence import UNSET, Unset, resolve_proxy, resolve_timeout
from src.httpwrap.settings import GlobalSettings
from src.httpwrap.settings import settings as global_settings
from src.httpwrap.transport import Transport

logger = logging.getLogger(__name__)

RequestLike = requests.Request | requests.PreparedRequest


@dataclass(slots=True)
class Options:
    """
    Per-call overrides. Passing any Options, even an empty one, sends the
    request through a private transport instead of the client's shared one.

    proxy: UNSET (default) defers to global/client settings, None forces a
    direct connection, a string is a proxy URL.
    """

    timeout: float | None = None
    proxy: str | None | Unset = UNSET
    context: CancelContext | None = None
    headers: Mapping[str, str] | None = None
    allow_redirects: bool | None = None

    def __post_init__(self) -> None:
        if isinstance(self.proxy, str):
            self.proxy = parse_proxy_url(self.proxy)


class Client:
    def __init__(
        self,
        timeout: float | None = None,
        proxy: str | None = None,
        context: CancelContext | None = None,
        *,
        stop_when_context_done: bool = False,
        allow_redirects: bool = False,
        settings: GlobalSettings | None = None,
    ) -> None:
        self.timeout = timeout
        self.proxy = parse_proxy_url(proxy) if proxy is not None else None
        self.context = context
        self.stop_when_context_done = stop_when_context_done
        self.allow_redirects = allow_redirects

        self._settings = settings if settings is not None else global_settings
        self._lock = threading.Lock()
        self._transport: Transport | None = None

    @classmethod
    def from_config(cls, cfg: HttpConfig, **kwargs: Any) -> Client:
        return cls(
            timeout=cfg.timeout,
            proxy=cfg.proxy,
            stop_when_context_done=cfg.stop_when_context_done,
            allow_redirects=cfg.allow_redirects,
            **kwargs,
        )

    @property
    def transport(self) -> Transport | None:
        """The shared transport, None until the first dispatch."""
        return self._transport

    def dispatch(self, request: RequestLike, options: Options | None = None) -> requests.Response:
        """
        Send request and return the response; transport errors propagate as-is.

        Without options the shared transport is reconfigured in place and
        reused, so concurrent option-less calls send with whatever settings
        were written last. Use Options for strict per-call isolation.
        """
        global_proxy_enabled, global_proxy = self._settings.proxy_state()
        global_timeout_enabled, global_timeout = self._settings.timeout_state()
        default_timeout = self._settings.default_timeout

        with self._lock:
            shared = self._shared_transport(default_timeout)
            shared.timeout = resolve_timeout(
                None, global_timeout_enabled, global_timeout, self.timeout, default_timeout
            )
            shared.proxy = resolve_proxy(UNSET, global_proxy_enabled, global_proxy, self.proxy)
            shared.allow_redirects = self.allow_redirects
            context = self.context

            # prepared before any isolated transport exists; a bad URL must not leak a session
            extra_headers = options.headers if options is not None else None
            prepared = self._prepare(shared, request, extra_headers)

            if options is not None:
                isolated = Transport(
                    timeout=resolve_timeout(
                        options.timeout,
                        global_timeout_enabled,
                        global_timeout,
                        self.timeout,
                        default_timeout,
                    ),
                    proxy=resolve_proxy(
                        options.proxy,
                        global_proxy_enabled,
                        global_proxy,
                        self.proxy,
                        transport_value=shared.proxy,
                    ),
                    allow_redirects=(
                        self.allow_redirects
                        if options.allow_redirects is None
                        else options.allow_redirects
                    ),
                )
                if options.context is not None:
                    context = options.context

        if options is not None:
            with isolated:
                return isolated.send(prepared, context)

        if self.stop_when_context_done and context is not None:
            err = context.err()
            if err is not None:
                raise err

        return shared.send(prepared, context)

    def send(
        self,
        method: str,
        url: str,
        options: Options | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        return self.dispatch(requests.Request(method.upper(), url, **kwargs), options)

    def get(self, url: str, options: Options | None = None, **kwargs: Any) -> requests.Response:
        return self.send("GET", url, options, **kwargs)

    def post(self, url: str, options: Options | None = None, **kwargs: Any) -> requests.Response:
        return self.send("POST", url, options, **kwargs)

    def head(self, url: str, options: Options | None = None, **kwargs: Any) -> requests.Response:
        return self.send("HEAD", url, options, **kwargs)

    def close(self) -> None:
        with self._lock:
            if self._transport is not None:
                self._transport.close()
                self._transport = None

    def _shared_transport(self, default_timeout: float) -> Transport:
        # caller holds self._lock
        if self._transport is None:
            self._transport = Transport(default_timeout, allow_redirects=self.allow_redirects)
            logger.debug("created shared transport for %r", self)
        return self._transport

    @staticmethod
    def _prepare(
        transport: Transport,
        request: RequestLike,
        extra_headers: Mapping[str, str] | None = None,
    ) -> requests.PreparedRequest:
        headers: MutableMapping[str, str]
        if isinstance(request, requests.Request):
            if request.headers is None:
                request.headers = {}
            headers = request.headers
        else:
            headers = request.headers

        # defaults first so explicit extra headers can replace them
        _ = ensure_user_agent(headers)
        for name, value in (extra_headers or {}).items():
            set_header(headers, name, value)

        return transport.prepare(request)

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
