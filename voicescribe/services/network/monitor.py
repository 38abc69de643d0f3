"""Connectivity monitoring with subscriber notification.

``NetworkMonitor`` keeps a single online/offline flag and notifies
subscribers whenever it flips. Transitions are either pushed in by the
host (``set_online``) or derived by a background probe that issues a
lightweight GET against a health URL every few seconds.
"""

import asyncio
import logging
from collections.abc import Callable

import httpx

from voicescribe.core.config import get_settings

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class NetworkMonitor:
    """Tracks connectivity and fans out transitions to listeners.

    Args:
        online: Initial connectivity assumption.
        probe_url: URL polled by ``start_probe`` (any HTTP response = online).
        probe_interval: Seconds between probes.
        client: Optional ``httpx.AsyncClient`` used for probing.
    """

    def __init__(
        self,
        online: bool = True,
        probe_url: str | None = None,
        probe_interval: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._online = online
        self._listeners: list[Listener] = []
        self._probe_url = probe_url
        self._probe_interval = probe_interval
        self._client = client
        self._probe_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings=None, **kwargs) -> "NetworkMonitor":
        """Monitor probing ``network_probe_url``, or the proxy's ``/health``."""
        settings = settings or get_settings()
        probe_url = settings.network_probe_url or f"{settings.api_base_url.rstrip('/')}/health"
        return cls(probe_url=probe_url, probe_interval=settings.network_probe_interval, **kwargs)

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and immediately call it with the current status.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)
        listener(self._online)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        """Record a connectivity transition; no-op if the status is unchanged."""
        if online == self._online:
            return
        self._online = online
        logger.info("Network status changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Network listener failed")

    def handle_online(self) -> None:
        self.set_online(True)

    def handle_offline(self) -> None:
        self.set_online(False)

    async def probe(self) -> bool:
        """Probe the configured URL once and update the status.

        Any HTTP response counts as connectivity; only transport-level
        failures (DNS, refused connection, timeout) mark the monitor offline.
        """
        if not self._probe_url:
            return self._online

        client = self._client or httpx.AsyncClient(timeout=5.0)
        try:
            await client.get(self._probe_url)
            online = True
        except httpx.TransportError as exc:
            logger.debug("Network probe failed (%s): %s", self._probe_url, exc)
            online = False
        finally:
            if self._client is None:
                await client.aclose()

        self.set_online(online)
        return online

    def start_probe(self) -> None:
        """Launch the background probe loop (idempotent)."""
        if self._probe_task is not None or not self._probe_url:
            return
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def stop_probe(self) -> None:
        """Cancel the background probe loop and wait for it to finish."""
        task = self._probe_task
        self._probe_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _probe_loop(self) -> None:
        while True:
            await self.probe()
            await asyncio.sleep(self._probe_interval)

    async def cleanup(self) -> None:
        """Stop probing and drop all listeners."""
        await self.stop_probe()
        self._listeners.clear()
