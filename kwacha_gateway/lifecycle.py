"""Process lifecycle: Starting -> Accepting -> Draining -> Stopped."""

import asyncio
import enum
import logging
import signal
from typing import Callable, Optional

import uvicorn

logger = logging.getLogger("kwacha_gateway.lifecycle")


class LifecycleState(str, enum.Enum):
    STARTING = "starting"
    ACCEPTING = "accepting"
    DRAINING = "draining"
    STOPPED = "stopped"


class LifecycleManager:
    """Single owner of startup/shutdown transitions.

    Both termination signals funnel into begin_draining(); every transition
    happens at most once, later calls are no-ops.
    """

    def __init__(self, database, grace_s: float):
        self.database = database
        self.grace_s = grace_s
        self.state = LifecycleState.STARTING
        self.release_calls = 0
        self._release_task: Optional[asyncio.Task] = None

    def mark_accepting(self) -> bool:
        if self.state is not LifecycleState.STARTING:
            return False
        self.state = LifecycleState.ACCEPTING
        logger.info("lifecycle: accepting connections")
        return True

    def begin_draining(self, reason: str = "shutdown") -> bool:
        if self.state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
            logger.info("lifecycle: %s received while %s, ignoring", reason, self.state.value)
            return False
        self.state = LifecycleState.DRAINING
        logger.info("%s received, shutting down gracefully", reason)
        return True

    async def release(self) -> None:
        """Release the database (bounded by grace_s) and move to Stopped.

        Concurrent or repeated callers share the first call's work.
        """
        if self._release_task is None:
            if self.state not in (LifecycleState.DRAINING, LifecycleState.STOPPED):
                self.begin_draining("release")
            self._release_task = asyncio.ensure_future(self._release())
        await asyncio.shield(self._release_task)

    async def _release(self) -> None:
        self.release_calls += 1
        try:
            await asyncio.wait_for(self.database.disconnect(), timeout=self.grace_s)
        except asyncio.TimeoutError:
            logger.error("shutdown: database release exceeded %ss grace period, exiting anyway", self.grace_s)
        except Exception:
            logger.exception("shutdown: database release failed, exiting anyway")
        finally:
            self.state = LifecycleState.STOPPED
            logger.info("lifecycle: stopped")


class GatewayServer(uvicorn.Server):
    """uvicorn server whose SIGINT/SIGTERM handling goes through the lifecycle manager.

    uvicorn stops accepting on the first signal and drains open connections for
    at most ``timeout_graceful_shutdown``. Later signals are absorbed by the
    lifecycle manager and never reach uvicorn, so a second SIGINT cannot force
    an exit that skips release(). shutdown() calls release() itself in case the
    lifespan did not.
    """

    def __init__(self, config: uvicorn.Config, lifecycle: LifecycleManager,
                 on_started: Optional[Callable[[], None]] = None):
        super().__init__(config)
        self.lifecycle = lifecycle
        self.on_started = on_started

    async def startup(self, sockets=None) -> None:
        # lifespan startup runs first, then uvicorn binds the listener
        await super().startup(sockets=sockets)
        if self.started and self.lifecycle.mark_accepting() and self.on_started is not None:
            self.on_started()

    def handle_exit(self, sig: int, frame) -> None:
        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = str(sig)
        if not self.lifecycle.begin_draining(name):
            return
        super().handle_exit(sig, frame)

    async def shutdown(self, sockets=None) -> None:
        try:
            await super().shutdown(sockets=sockets)
        finally:
            await self.lifecycle.release()
