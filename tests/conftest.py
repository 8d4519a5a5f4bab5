from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Mapping

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from metaforce.core.transport import CallContext  # noqa: E402

SERVER_URL = "https://na1.salesforce.com/services/Soap/m/50.0/00D000000000001"


class FakeTransport:
    """Transport stub that records every call and replays canned responses.

    A response may be a value, an exception instance (raised), a callable
    taking the payload, or a list consumed one entry per call.
    """

    def __init__(self, responses: Mapping[str, Any] | None = None):
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, CallContext, dict[str, Any]]] = []
        self.compression: bool | None = None
        self.debug: bool | None = None
        self.logger = None
        self.closed = False

    def call(self, operation: str, context: CallContext, payload: Mapping[str, Any]) -> Any:
        self.calls.append((operation, context, dict(payload)))
        handler = self.responses.get(operation)
        if isinstance(handler, list):
            handler = handler.pop(0)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(payload)
        return handler

    def set_compression(self, enabled: bool) -> None:
        self.compression = enabled

    def set_logger(self, logger) -> None:
        self.logger = logger

    def set_debug(self, enabled: bool) -> None:
        self.debug = enabled

    def close(self) -> None:
        self.closed = True

    def operations(self) -> list[str]:
        return [op for op, _, _ in self.calls]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
