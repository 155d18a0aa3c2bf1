#!/usr/bin/env python3
"""Main entry point for the control history server.

Bootstraps a Uvicorn ASGI server around a GitHistoryService rooted at
--workdir (the control set directory, anywhere inside a git repository).
Loads .env file from --workdir if present to populate environment variables.
Configuration lives in <workdir>/.controlhist/config.json and is hot-reloaded.
"""

import asyncio
import os
import signal
import sys
from argparse import ArgumentParser
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

# Global flag for graceful shutdown
shutdown_event = asyncio.Event()

if __name__ == "__main__":
    # Parse arguments FIRST so --help works without touching config
    parser = ArgumentParser(description="Start the control history server")
    parser.add_argument(
        "--workdir",
        required=True,
        help="Path to the control set directory (inside a git repository)",
    )
    parser.add_argument("--host", help="Bind host. Overrides config.")
    parser.add_argument("--port", type=int, help="Bind port. Overrides config.")
    parser.add_argument(
        "--log-format",
        choices=["pretty", "json"],
        help="Log format (pretty or json). Overrides config and LOG_FORMAT env var.",
    )
    parser.add_argument(
        "--log-colors",
        type=lambda x: x.lower() in ("true", "1", "yes", "on"),
        help="Enable colored logs (true/false). Overrides config and LOG_COLORS env var.",
    )
    args, _ = parser.parse_known_args()

    # Logging reads these at import time, so they must be set before the import
    if args.log_format:
        os.environ["LOG_FORMAT"] = args.log_format
    if args.log_colors is not None:
        os.environ["LOG_COLORS"] = "true" if args.log_colors else "false"

    from controlhist.utils.logger import get_logger

    startup_logger = get_logger("server.startup")

    def signal_handler(signum, frame):
        sig_name = signal.Signals(signum).name
        startup_logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    workdir_path = Path(args.workdir).expanduser().resolve()
    if not workdir_path.exists():
        startup_logger.error("--workdir does not exist", path=str(workdir_path))
        sys.exit(1)
    if not workdir_path.is_dir():
        startup_logger.error("--workdir is not a directory", path=str(workdir_path))
        sys.exit(1)

    os.chdir(workdir_path)
    startup_logger.debug("Changed working directory", workdir=str(workdir_path))

    from dotenv import load_dotenv

    env_file = workdir_path / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)
        startup_logger.debug("Loaded .env file", path=str(env_file))
    else:
        startup_logger.debug("No .env file found in workdir", path=str(env_file))

    from controlhist.config import (
        LOGGING_CONFIG,
        create_config_manager,
        get_default_config,
        settings,
    )
    from controlhist.config.constants import CONFIG_DIR_NAME

    try:
        config_dir = workdir_path / CONFIG_DIR_NAME
        config_dir.mkdir(parents=True, exist_ok=True)

        config_manager = create_config_manager(
            config_dir, defaults=get_default_config()
        )
        # Watching starts in the app lifespan so it binds to the server's loop
        asyncio.run(config_manager.initialize())
        settings.attach(config_manager)

        startup_logger.info(
            "Configuration initialized",
            config_file=str(config_dir / "config.json"),
        )
    except Exception as e:
        startup_logger.error("Failed to initialize configuration", error=str(e))
        sys.exit(1)

    try:
        import uvicorn

        from controlhist.api.app import create_app
        from controlhist.services.git_history import GitHistoryService

        service = GitHistoryService.from_settings(workdir_path, settings)
        if not asyncio.run(service.is_repository()):
            # Still serve: every history query answers with an empty result
            startup_logger.warning(
                "Workdir is not inside a git repository", workdir=str(workdir_path)
            )

        host = args.host or settings.server_host
        port = args.port or settings.server_port

        app = create_app(service)
        app.state.config_manager = config_manager

        startup_logger.info(
            "Starting control history server",
            server_url=f"http://{host}:{port}",
            docs_url=f"http://{host}:{port}/docs",
            workdir=str(workdir_path),
        )

        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_config=LOGGING_CONFIG,
            lifespan="on",
            timeout_graceful_shutdown=5,
        )
        server = uvicorn.Server(config)

        async def run_server():
            serve_task = asyncio.create_task(server.serve())
            shutdown_task = asyncio.create_task(shutdown_event.wait())

            done, _pending = await asyncio.wait(
                {shutdown_task, serve_task}, return_when=asyncio.FIRST_COMPLETED
            )

            if shutdown_task in done:
                startup_logger.info("Stopping server due to shutdown signal...")
                server.should_exit = True
                await serve_task
            else:
                shutdown_task.cancel()

            startup_logger.info("Server stopped")

        asyncio.run(run_server())
    except ImportError as e:
        startup_logger.error(
            "Error importing required modules",
            error=str(e),
            hint="Run: pip install -e .",
        )
        sys.exit(1)
    except Exception as e:
        startup_logger.error("Error starting server", error=str(e))
        sys.exit(1)
