from __future__ import annotations

import argparse
from dataclasses import dataclass
import logging
import sys

from bs4 import BeautifulSoup
import requests

from src.common.cli_utils import build_cli_client, parse_keyvals
from src.httpwrap.client import Client
from src.httpwrap.errors import HttpWrapError
from src.httpwrap.settings import set_default_timeout, set_global_proxy, set_global_timeout


@dataclass(slots=True)
class FetchResult:
    url: str
    status_code: int
    reason: str
    elapsed_s: float
    user_agent: str
    redirects: int
    title: str | None = None


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch a URL through httpwrap")
    _ = p.add_argument("url", help="Target URL, e.g. https://example.com/")

    # request
    _ = p.add_argument("--method", default="GET", help="HTTP method (default: %(default)s)")
    _ = p.add_argument("--data", default=None, help="Request body")
    _ = p.add_argument("--header", action="append", default=[], metavar="Name: Value")

    # client-level plumbing
    _ = p.add_argument(
        "--proxy",
        default=None,
        help="Client proxy URL (default: HTTP(S)_PROXY; '' to disable)",
    )
    _ = p.add_argument("--timeout", type=float, default=None, help="Client timeout in seconds")
    _ = p.add_argument(
        "--follow-redirects", action="store_true", help="Follow redirects instead of returning them"
    )

    # process-wide overrides
    _ = p.add_argument("--global-proxy", default=None, help="Proxy forced on every request")
    _ = p.add_argument(
        "--global-timeout", type=float, default=None, help="Timeout forced on every request (s)"
    )
    _ = p.add_argument(
        "--default-timeout", type=float, default=None, help="Fallback timeout (s, default 20)"
    )

    # output
    _ = p.add_argument("--title", action="store_true", help="Print the HTML <title> if present")
    _ = p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return p.parse_args(argv)


def page_title(html: str) -> str | None:
    node = BeautifulSoup(html, "html.parser").title
    if node is None or node.string is None:
        return None
    return node.string.strip() or None


def exit_code(status_code: int) -> int:
    """0 for 2xx/3xx, 1 for anything else."""
    return 0 if 200 <= status_code < 400 else 1


def fetch(
    client: Client,
    url: str,
    *,
    method: str = "GET",
    data: str | None = None,
    headers: dict[str, str] | None = None,
    want_title: bool = False,
) -> FetchResult:
    request = requests.Request(method.upper(), url, headers=dict(headers or {}), data=data)
    resp = client.dispatch(request)

    title = None
    if want_title and "html" in resp.headers.get("Content-Type", ""):
        title = page_title(resp.text or "")

    return FetchResult(
        url=resp.url,
        status_code=resp.status_code,
        reason=resp.reason or "",
        elapsed_s=resp.elapsed.total_seconds(),
        user_agent=resp.request.headers.get("User-Agent", ""),
        redirects=len(resp.history),
        title=title,
    )


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.default_timeout is not None:
            set_default_timeout(args.default_timeout)
        if args.global_timeout is not None:
            set_global_timeout(args.global_timeout)
        if args.global_proxy is not None:
            set_global_proxy(args.global_proxy)

        headers = parse_keyvals(args.header, ":") if args.header else {}
        client = build_cli_client(
            proxy=args.proxy,
            timeout=args.timeout,
            follow_redirects=args.follow_redirects,
        )
    except (HttpWrapError, ValueError) as e:
        print(f"[-] Invalid configuration: {e}")
        return 2

    with client:
        try:
            res = fetch(
                client,
                args.url,
                method=args.method,
                data=args.data,
                headers=headers,
                want_title=args.title,
            )
        except (requests.RequestException, HttpWrapError) as e:
            print(f"[-] Request failed: {e}")
            return 2

    print(f"URL:        {res.url}")
    print(f"Status:     {res.status_code} {res.reason}".rstrip())
    print(f"Elapsed:    {res.elapsed_s:.3f}s")
    print(f"Redirects:  {res.redirects}")
    print(f"User-Agent: {res.user_agent}")
    if res.title is not None:
        print(f"Title:      {res.title}")

    return exit_code(res.status_code)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

# Usage examples
# python -m src.httpwrap.fetch https://example.com/ --title
# python -m src.httpwrap.fetch http://example.com/ \
#   --global-proxy http://127.0.0.1:8080 \
#   --global-timeout 5 \
#   --header "Accept: text/html"
