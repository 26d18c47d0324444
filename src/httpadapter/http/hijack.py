"""
=============================================================================
HIJACK PROTOCOL
=============================================================================

Hijacking lets a handler take the raw connection away from the normal
response-writing path, for protocols such as WebSockets that speak their
own framing once the HTTP handshake is over.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HIJACK FLOW                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler ──► request.hijack(takeover)                              │
    │                   │                                                  │
    │                   ├── NOT_HIJACKED ──► HIJACKED  (one-shot, locked) │
    │                   ├── adapter detaches the socket                   │
    │                   ├── takeover(reader, writer)                      │
    │                   └── raise HijackException                         │
    │                                                                      │
    │   dispatcher catches HijackException, sees HIJACKED,                │
    │   and writes nothing.                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The transition is irreversible. Once a request is hijacked its body can no
longer be read and it cannot be hijacked again.

=============================================================================
"""

import threading
from enum import Enum
from typing import Any, Callable


# A takeover receives the detached (reader, writer) pair.
Takeover = Callable[[Any, Any], Any]

# Supplied by an adapter: performs the detach and calls the takeover.
HijackCallback = Callable[[Takeover], Any]


class HijackException(Exception):
    """
    Sentinel raised after a successful hijack.

    It is not an error: it tells every layer between the handler and the
    adapter that no response will be produced for this request. Middleware
    must let it propagate.
    """

    def __init__(self) -> None:
        super().__init__(
            "A HijackException should be handled by the adapter; "
            "middleware must not catch it."
        )


class HijackError(RuntimeError):
    """Raised on misuse of the hijack protocol."""


class HijackState(Enum):
    """Lifecycle of a hijackable request."""

    NOT_HIJACKED = "not_hijacked"
    HIJACKED = "hijacked"


class OnHijack:
    """
    One-shot guard around an adapter's hijack callback.

    Request copies produced by ``Request.change`` share the same instance,
    so hijacking any copy marks all of them.
    """

    def __init__(self, callback: HijackCallback):
        self._callback = callback
        self._state = HijackState.NOT_HIJACKED
        self._lock = threading.Lock()

    @property
    def state(self) -> HijackState:
        return self._state

    @property
    def hijacked(self) -> bool:
        return self._state is HijackState.HIJACKED

    def run(self, takeover: Takeover) -> Any:
        """
        Flip to HIJACKED and invoke the adapter callback.

        Raises:
            HijackError: If the request was already hijacked.
        """
        with self._lock:
            if self._state is HijackState.HIJACKED:
                raise HijackError("This request has already been hijacked.")
            self._state = HijackState.HIJACKED
        return self._callback(takeover)
