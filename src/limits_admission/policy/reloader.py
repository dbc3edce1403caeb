"""
Live policy reloading.

``PolicyReloader`` runs one background task for the life of the process. The
task waits for whichever comes first of: a change notification for the policy
file, the refresh interval elapsing, a watch error, or shutdown. File changes
and timer ticks reload the document; a failed reload keeps the previous
generation active.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from watchfiles import Change, awatch

from limits_admission.core.errors import ConfigurationError
from limits_admission.metrics import POLICY_RELOAD_ERRORS, POLICY_RELOADS
from limits_admission.policy.loader import PolicyLoader
from limits_admission.policy.store import PolicyStore

logger = structlog.get_logger()

DEFAULT_REFRESH_INTERVAL = 300.0
WATCH_RETRY_DELAY = 1.0

# Kubernetes projects ConfigMaps through an atomically swapped ``..data`` symlink.
CONFIGMAP_DATA_PREFIX = "..data"


class ReloadTrigger(str, Enum):
    """Events the reload loop selects over."""

    TIMER = "timer"
    FILE_CHANGE = "file_change"
    WATCH_ERROR = "watch_error"
    SHUTDOWN = "shutdown"


class PolicyReloader:
    """Keeps a ``PolicyStore`` in sync with the policy file."""

    def __init__(
        self,
        store: PolicyStore,
        loader: PolicyLoader,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        watch_files: bool = True,
        watch_retry_delay: float = WATCH_RETRY_DELAY,
    ):
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")
        self.store = store
        self.loader = loader
        self.refresh_interval = refresh_interval
        self.watch_files = watch_files
        self.watch_retry_delay = watch_retry_delay
        self.reloads = 0
        self.reload_errors = 0
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def reload(self) -> bool:
        """Load the document and publish it.

        Returns True when a new generation was published. Errors are logged
        and counted; the active generation stays in place.
        """
        self.reloads += 1
        POLICY_RELOADS.inc()
        try:
            generation = self.loader.load()
        except ConfigurationError as e:
            self.reload_errors += 1
            POLICY_RELOAD_ERRORS.inc()
            logger.error(
                "config_load_error",
                error=e.message,
                **{"path": str(self.loader.path), **e.details},
            )
            return False

        self.store.publish(generation)
        logger.info(
            "policy_reloaded",
            path=str(self.loader.path),
            generation=self.store.generation_number,
        )
        return True

    def _is_policy_change(self, change: Change, path: str) -> bool:
        name = Path(path).name
        return name == self.loader.path.name or name.startswith(CONFIGMAP_DATA_PREFIX)

    async def _watch(self, triggers: asyncio.Queue[tuple[ReloadTrigger, Any]]) -> None:
        """Forward file change notifications into the trigger queue.

        A failed watch is reported and restarted after ``watch_retry_delay``
        until shutdown.
        """
        while not self._stop.is_set():
            try:
                async for changes in awatch(
                    self.loader.path.parent,
                    watch_filter=self._is_policy_change,
                    stop_event=self._stop,
                    recursive=False,
                ):
                    await triggers.put((ReloadTrigger.FILE_CHANGE, changes))
            except Exception as e:
                await triggers.put((ReloadTrigger.WATCH_ERROR, e))
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.watch_retry_delay)
                except asyncio.TimeoutError:
                    pass

    async def _next_trigger(
        self, triggers: asyncio.Queue[tuple[ReloadTrigger, Any]]
    ) -> tuple[ReloadTrigger, Any]:
        get = asyncio.ensure_future(triggers.get())
        stop = asyncio.ensure_future(self._stop.wait())
        done, pending = await asyncio.wait(
            {get, stop},
            timeout=self.refresh_interval,
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()

        if stop in done:
            return ReloadTrigger.SHUTDOWN, None
        if get in done:
            return get.result()
        return ReloadTrigger.TIMER, None

    async def run(self) -> None:
        """Reload loop; returns once ``close()`` is called."""
        triggers: asyncio.Queue[tuple[ReloadTrigger, Any]] = asyncio.Queue()
        watcher = asyncio.create_task(self._watch(triggers)) if self.watch_files else None

        logger.info(
            "policy_watch_started",
            path=str(self.loader.path),
            refresh_interval=self.refresh_interval,
            watch_files=self.watch_files,
        )
        try:
            while True:
                trigger, detail = await self._next_trigger(triggers)
                if trigger is ReloadTrigger.SHUTDOWN:
                    break
                if trigger is ReloadTrigger.WATCH_ERROR:
                    logger.error("watch_error", path=str(self.loader.path), error=str(detail))
                    continue

                logger.debug("policy_reload_triggered", trigger=trigger.value)
                await asyncio.to_thread(self.reload)
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)
            logger.info("policy_watch_stopped", path=str(self.loader.path))

    def start(self) -> asyncio.Task[None]:
        """Schedule the reload loop on the running event loop."""
        if self.running:
            raise RuntimeError("reloader already started")
        self._stop.clear()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self) -> None:
        """Stop watching and wait for the loop to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
