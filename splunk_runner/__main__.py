"""
Entry point for running the forwarder via `python -m splunk_runner`.

Supervises splunkd and a tail of splunkd.log, and serves the metrics and
health endpoints with uvicorn. Extra command line arguments are passed to
`splunk start`.
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler

import uvicorn

from .config import Config, config
from .health import HealthMonitor
from .process import Supervisor, command_spawner, splunkd_command, tail_command
from .server import create_app
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


def setup_logging(cfg: Config):
    """Log to the console, and to a rotating file when one is configured."""
    log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    handlers = [console_handler]

    if cfg.log_file:
        file_handler = RotatingFileHandler(
            cfg.log_file,
            maxBytes=cfg.log_max_bytes,
            backupCount=cfg.log_backup_count,
        )
        file_handler.setFormatter(log_formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.INFO, handlers=handlers)


def start_server(app, cfg: Config) -> threading.Thread:
    """Serve the app from a daemon thread so it never holds up exit."""
    server = uvicorn.Server(
        uvicorn.Config(app, host=cfg.host, port=cfg.port, log_level="warning")
    )
    thread = threading.Thread(target=server.run, name="http", daemon=True)
    thread.start()
    logger.info(f"Serving metrics and health on {cfg.host}:{cfg.port}")
    return thread


def main(argv: list[str] = None, cfg: Config = config) -> int:
    """Run the forwarder until SIGINT or SIGTERM."""
    if argv is None:
        argv = sys.argv[1:]
    setup_logging(cfg)

    shutdown = ShutdownCoordinator()
    shutdown.arm()

    splunkd = Supervisor("splunkd", shutdown, restart_delay=cfg.restart_delay, stop_timeout=cfg.stop_timeout)
    tail = Supervisor("tail", shutdown, restart_delay=cfg.restart_delay, stop_timeout=cfg.stop_timeout)

    monitor = HealthMonitor.from_config(cfg)
    start_server(create_app(monitor, splunkd.process), cfg)

    splunkd_thread = threading.Thread(
        target=splunkd.run,
        args=(command_spawner(splunkd_command(cfg, argv)),),
        name="splunkd",
    )
    splunkd_thread.start()

    tail.run(command_spawner(tail_command(cfg)))
    splunkd_thread.join()
    logger.info("Forwarder runner stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
