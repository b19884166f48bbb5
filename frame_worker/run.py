import sys
import signal
import logging

import uvicorn

from .config import WorkerConfig
from .logging_setup import setup_logging, log_exception
from .http_server import create_app
from .orchestrator import PipelineOrchestrator
from .sessions import SessionStore, start_cleanup_thread

logger = logging.getLogger("frame_worker")


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main():
    """Main entry point"""
    signal.signal(signal.SIGTERM, signal_handler)

    config = WorkerConfig.from_env()
    setup_logging(config.LOG_LEVEL, config.log_dir)

    try:
        config.validate()
        store = SessionStore(config)
        orchestrator = PipelineOrchestrator(config, store)
        app = create_app(config, store, orchestrator)
    except Exception as e:
        log_exception(logger, f"Frame worker failed to start: {str(e)}")
        sys.exit(1)

    start_cleanup_thread(store, config.CLEANUP_INTERVAL_SEC)

    logger.info(f"Using FFmpeg at: {config.FFMPEG_PATH}")
    logger.info(f"Server running at http://localhost:{config.HTTP_PORT}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=config.HTTP_PORT,
        log_level="warning",  # Reduce uvicorn logging
        access_log=False
    )


if __name__ == "__main__":
    main()
