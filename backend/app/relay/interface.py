"""Abstract interface for downstream subscriber connections."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Subscriber(ABC):
    """Contract for one downstream subscriber session.

    The ConnectionRegistry, HeartbeatSweeper and ShutdownCoordinator only
    ever talk to subscribers through this interface. Identity is object
    identity: one Subscriber instance per accepted session.

    Lifecycle:
        sub = WebSocketSubscriber(websocket)
        registry.register(sub)
        # ... frames are pushed with await sub.send(frame) ...
        registry.unregister(sub)
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the session can still accept sends."""

    @property
    @abstractmethod
    def remote(self) -> str:
        """Best-effort remote identity for log lines. Diagnostic only."""

    @abstractmethod
    async def send(self, frame: str | bytes) -> None:
        """Send one frame unchanged.

        Raises DownstreamSendError if the session cannot take it.
        """

    @abstractmethod
    async def close(self, code: int = 1001, reason: str = "") -> None:
        """Close the session. Safe to call on an already closed session."""
