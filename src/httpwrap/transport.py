from __future__ import annotations

from concurrent.futures import Future, wait
import logging
import threading
import time
from types import TracebackType
from typing import Any

import requests

from src.common.http_utils import build_session, proxy_mapping
from src.httpwrap.context import CancelContext

logger = logging.getLogger(__name__)

MIN_TIMEOUT = 0.001  # seconds
POLL_INTERVAL = 0.01  # seconds


class _Exchange:
    """
    One request/response cycle running on a worker thread.

    The caller owns the deadline and the context; abort() interrupts whatever
    response the worker is reading and makes it drop any later one.
    """

    def __init__(self) -> None:
        self.future: Future[requests.Response] = Future()
        self._lock = threading.Lock()
        self._aborted = False
        self._response: requests.Response | None = None

    def track(self, response: requests.Response) -> None:
        with self._lock:
            self._response = response
            aborted = self._aborted
        if aborted:
            response.close()
            raise requests.exceptions.ConnectionError("exchange abandoned", response=response)

    def abort(self) -> None:
        with self._lock:
            self._aborted = True
            response = self._response
        if response is None:
            return
        try:
            # interrupts a read blocked in the worker thread
            response.raw.shutdown()
        except (ValueError, RuntimeError, OSError):
            # already released or closed; the worker finishes on its own timeout
            logger.debug("no socket to shut down for %s", response.url)


class Transport:
    """
    One requests.Session plus the knobs a Client rewrites before each send.

    timeout/proxy/allow_redirects are plain attributes; the owner serializes
    writes, send() reads whatever is there when it starts. timeout bounds the
    whole exchange (connect, headers, body and redirect hops), not each phase.
    """

    def __init__(
        self,
        timeout: float,
        proxy: str | None = None,
        *,
        allow_redirects: bool = False,
        verify_tls: bool = False,
    ) -> None:
        self.timeout = timeout
        self.proxy = proxy
        self.allow_redirects = allow_redirects
        self.verify_tls = verify_tls
        self.session: requests.Session = build_session(verify_tls)

    def check_redirect(self, response: requests.Response) -> bool:
        """Decide whether to follow a redirect response."""
        return self.allow_redirects

    def prepare(self, request: requests.Request | requests.PreparedRequest) -> requests.PreparedRequest:
        if isinstance(request, requests.PreparedRequest):
            return request
        return self.session.prepare_request(request)

    def send(
        self,
        prepared: requests.PreparedRequest,
        context: CancelContext | None = None,
    ) -> requests.Response:
        """
        Send and fully read the response.

        Raises the context's error if it is done before or during the send, and
        requests.exceptions.ReadTimeout once timeout seconds have passed.
        Anything else the transport raises propagates unchanged.
        """
        if context is not None:
            err = context.err()
            if err is not None:
                raise err

        timeout = self.timeout
        deadline = time.monotonic() + timeout
        if context is not None:
            remaining = context.remaining()
            if remaining is not None:
                deadline = min(deadline, time.monotonic() + remaining)

        kwargs: dict[str, Any] = {
            # urllib3 rejects a zero timeout; an expired deadline still times out
            "timeout": max(deadline - time.monotonic(), MIN_TIMEOUT),
            "proxies": proxy_mapping(self.proxy),
            "verify": self.verify_tls,
            "stream": True,
        }
        logger.debug(
            "%s %s timeout=%ss proxy=%s",
            prepared.method,
            prepared.url,
            timeout,
            self.proxy or "direct",
        )

        exchange = _Exchange()
        worker = threading.Thread(
            target=self._run,
            args=(exchange, prepared, kwargs),
            name="httpwrap-send",
            daemon=True,
        )
        worker.start()

        while True:
            step = min(POLL_INTERVAL, max(deadline - time.monotonic(), 0.0))
            done, _ = wait([exchange.future], timeout=step)
            if done:
                break

            if context is not None:
                err = context.err()
                if err is not None:
                    exchange.abort()
                    raise err

            if time.monotonic() >= deadline:
                exchange.abort()
                raise requests.exceptions.ReadTimeout(
                    f"{prepared.method} {prepared.url} exceeded {timeout}s", request=prepared
                )

        try:
            return exchange.future.result()
        except Exception as exc:
            # a failure caused by the context ending is reported as the context error
            err = context.err() if context is not None else None
            if err is not None:
                raise err from exc
            raise

    def _run(
        self,
        exchange: _Exchange,
        prepared: requests.PreparedRequest,
        kwargs: dict[str, Any],
    ) -> None:
        try:
            response = self.session.send(prepared, allow_redirects=False, **kwargs)
            exchange.track(response)

            if response.is_redirect and self.check_redirect(response):
                history = [response]
                for hop in self.session.resolve_redirects(response, prepared, **kwargs):
                    exchange.track(hop)
                    history.append(hop)
                response = history.pop()
                response.history = history

            # reads the streamed body; abort() makes this fail fast
            _ = response.content
        except Exception as exc:
            exchange.future.set_exception(exc)
        else:
            exchange.future.set_result(response)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
