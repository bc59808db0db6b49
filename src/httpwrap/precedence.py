"""
Timeout and proxy precedence.

Highest first: per-call value > global override > client instance > default.
Timeouts are float seconds where None or <= 0 means "not set". Proxies are URL
strings where None means a direct connection, so "not given" needs its own
sentinel: UNSET.
"""
from __future__ import annotations

from typing import Final


class Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = Unset()


def is_set(value: object) -> bool:
    return value is not UNSET


def resolve_timeout(
    call_value: float | None,
    global_enabled: bool,
    global_value: float,
    instance_value: float | None,
    default_value: float,
) -> float:
    if call_value is not None and call_value > 0:
        return call_value
    if global_enabled:
        return global_value
    if instance_value is not None and instance_value > 0:
        return instance_value
    return default_value


def resolve_proxy(
    call_value: str | None | Unset,
    global_enabled: bool,
    global_value: str | None,
    instance_value: str | None,
    transport_value: str | None | Unset = UNSET,
) -> str | None:
    """
    Pick the proxy for one request.

    An explicit call-level None (direct connection) wins over an enabled global
    proxy; only an omitted call value lets the global override apply.
    transport_value is given on the isolated per-call path and carries over the
    shared transport's current proxy instead of the raw instance value.
    """
    if not isinstance(call_value, Unset):
        return call_value
    if global_enabled:
        return global_value
    if not isinstance(transport_value, Unset):
        return transport_value
    return instance_value
