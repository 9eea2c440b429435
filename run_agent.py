#!/usr/bin/env python3
"""
Entry point: serve the web agent until SIGTERM/SIGINT.

On a termination signal the server stops accepting connections, lets in-flight
requests finish, then the process exits with status 0.
"""

import logging
import signal
import sys
import threading
from datetime import datetime, timezone

from werkzeug.serving import make_server

from config_manager import ConfigError, load_config
from fact_aggregators import BYTES_PER_MB, safe_read
from orchestration import pod_info
from platform_facts import PlatformFactsProvider
from web_agent import create_app

logger = logging.getLogger(__name__)


def configure_logging(level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


class AgentServer:
    """Threaded WSGI server with a shutdown that waits for in-flight requests."""

    def __init__(self, app, host, port):
        self._server = make_server(host, port, app, threaded=True)
        # socketserver only tracks non-daemon request threads, and
        # server_close() joins just the tracked ones
        self._server.daemon_threads = False
        self._server.block_on_close = True
        self._stopping = threading.Event()

    @property
    def port(self):
        return self._server.server_port

    def serve(self):
        """Block serving requests until stop() is called, then drain."""
        try:
            self._server.serve_forever()
        finally:
            # closes the listening socket and joins request threads
            self._server.server_close()
            logger.info("Server closed")

    def stop(self):
        """Ask the serve loop to exit. Safe to call from a signal handler."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        # shutdown() blocks until serve_forever returns, so it cannot run on
        # the thread that is serving
        threading.Thread(target=self._server.shutdown, name="AgentShutdown", daemon=True).start()


def log_startup(port, provider):
    pod = pod_info(provider)
    memory = safe_read(provider, 'memory_usage') or {}
    logger.info(f"Server running on port: {port}")
    logger.info(f"Hostname: {pod.hostname}")
    logger.info(f"Pod IP: {pod.pod_ip}")
    logger.info(f"Pod Name: {pod.pod_name}")
    logger.info(f"Namespace: {pod.pod_namespace}")
    logger.info(f"Node: {pod.node_name}")
    logger.info(f"Started: {datetime.now(timezone.utc).isoformat()}")
    logger.info(f"Python version: {safe_read(provider, 'runtime_version')}")
    logger.info(f"Memory: {round(memory.get('rss', 0) / BYTES_PER_MB)}MB used")


def install_signal_handlers(server):
    def signal_handler(signum, frame):
        """Handle graceful shutdown"""
        logger.info(f"{signal.Signals(signum).name} received, shutting down gracefully...")
        server.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def main():
    configure_logging()
    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    provider = PlatformFactsProvider()
    app = create_app(provider)
    try:
        server = AgentServer(app, config.host, config.port)
    except OSError as e:
        logger.error(f"Could not bind {config.host}:{config.port}: {e}")
        return 1

    install_signal_handlers(server)
    log_startup(server.port, provider)
    server.serve()
    return 0


if __name__ == '__main__':
    sys.exit(main())
