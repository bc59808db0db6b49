"""Exceptions raised by httpwrap itself.

Transport failures are the plain ``requests.exceptions`` hierarchy and are
never wrapped.
"""
from __future__ import annotations


class HttpWrapError(Exception):
    pass


class InvalidProxyURL(HttpWrapError, ValueError):
    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Invalid proxy URL '{value}': {reason}")
        self.value = value
        self.reason = reason


class ContextError(HttpWrapError):
    pass


class ContextCancelled(ContextError):
    def __init__(self) -> None:
        super().__init__("context cancelled")


class DeadlineExceeded(ContextError):
    def __init__(self) -> None:
        super().__init__("context deadline exceeded")
