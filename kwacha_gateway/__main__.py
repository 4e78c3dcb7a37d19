import signal
import sys

import uvicorn

from .app import create_app, log_banner
from .config import settings
from .lifecycle import GatewayServer
from .logging_setup import configure_logging, stop_logging


def main() -> int:
    configure_logging(settings.LOG_LEVEL)
    app = create_app(settings)
    lifecycle = app.state.lifecycle

    # uvicorn swaps in its own handlers while serving and re-delivers captured
    # signals to these once it returns; by then we are already stopped.
    def _on_signal(signum, frame):
        lifecycle.begin_draining(signal.Signals(signum).name)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _on_signal)

    config = uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_S,
        log_config=None,
        access_log=False,
    )
    server = GatewayServer(config, lifecycle, on_started=lambda: log_banner(settings))
    try:
        server.run()
    finally:
        stop_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
