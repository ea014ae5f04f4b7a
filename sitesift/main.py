"""Main entry point for the SiteSift server."""
import argparse
import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import uvicorn
from dotenv import load_dotenv

from . import __version__
from .config import ENV_PREFIX, CrawlerConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ACCESS_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(client_addr)s - \"%(request_line)s\" %(status_code)s"
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Command line options forwarded to the crawler as SITESIFT_* variables.
CRAWLER_OPTIONS = ("poll_interval", "page_request_delay", "request_timeout", "max_connections")


def parse_args(argv=None):
    """Parse command line arguments.

    Crawler options default to None so that unset ones leave the
    ``SITESIFT_*`` environment untouched.

    Args:
        argv: Arguments to parse. Defaults to ``sys.argv[1:]``.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(description="SiteSift - Sitemap Crawler and Full-Text Search Server")

    server = parser.add_argument_group("server")
    server.add_argument(
        "--host",
        type=str,
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to",
    )
    server.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port to bind the server to",
    )
    server.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development",
    )
    server.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("LOG_LEVEL", "info"),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Logging level",
    )
    server.add_argument(
        "--store",
        type=str,
        help=f'Page store configuration as JSON, e.g. \'{{"type": "memory"}}\' (env: {ENV_PREFIX}STORE)',
    )

    crawler = parser.add_argument_group("crawler")
    crawler.add_argument(
        "--poll-interval",
        type=float,
        help=f"Seconds between crawl cycles (env: {ENV_PREFIX}POLL_INTERVAL)",
    )
    crawler.add_argument(
        "--page-request-delay",
        type=float,
        help=f"Seconds to wait between page downloads (env: {ENV_PREFIX}PAGE_REQUEST_DELAY)",
    )
    crawler.add_argument(
        "--request-timeout",
        type=float,
        help=f"Timeout of a single HTTP request in seconds (env: {ENV_PREFIX}REQUEST_TIMEOUT)",
    )
    crawler.add_argument(
        "--max-connections",
        type=int,
        help=f"Size of the HTTP connection pool (env: {ENV_PREFIX}MAX_CONNECTIONS)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SiteSift {__version__}",
        help="Show version and exit",
    )
    return parser.parse_args(argv)


def configure_crawler(
    args: argparse.Namespace,
    environ: Optional[MutableMapping[str, str]] = None,
) -> CrawlerConfig:
    """Validate crawler options and export them for the server process.

    The application reads its configuration from the environment when its
    lifespan starts, possibly in a reloader child process, so options given
    on the command line are exported as ``SITESIFT_*`` variables.

    Args:
        args: Parsed command line arguments.
        environ: Environment to export to. Defaults to ``os.environ``.

    Returns:
        The effective crawler configuration.

    Raises:
        ValueError: If an option or a ``SITESIFT_*`` variable is invalid.
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {
        name: getattr(args, name) for name in CRAWLER_OPTIONS if getattr(args, name) is not None
    }
    config = CrawlerConfig(**overrides)

    for name, value in overrides.items():
        environ[f"{ENV_PREFIX}{name.upper()}"] = str(value)
    if args.store:
        environ[f"{ENV_PREFIX}STORE"] = args.store
    return config


def build_log_config() -> Dict[str, Any]:
    """Uvicorn logging configuration using the application's log format."""
    log_config = copy.deepcopy(uvicorn.config.LOGGING_CONFIG)
    log_config["formatters"]["default"]["fmt"] = LOG_FORMAT
    log_config["formatters"]["access"]["fmt"] = ACCESS_LOG_FORMAT
    return log_config


def main(argv=None):
    """Run the FastAPI application with its background crawler."""
    # Load environment variables from .env file if it exists
    env_path = Path(".") / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        logger.info(f"Loaded environment variables from {env_path}")

    args = parse_args(argv)
    logging.getLogger().setLevel(args.log_level.upper())

    try:
        crawler_config = configure_crawler(args)
    except ValueError as e:
        logger.error(f"Invalid crawler configuration: {e}")
        sys.exit(2)

    logger.info(
        f"Starting SiteSift {__version__} on {args.host}:{args.port} "
        f"(poll interval {crawler_config.poll_interval}s, "
        f"page request delay {crawler_config.page_request_delay}s)"
    )

    # A single worker: each worker process would run its own crawl scheduler.
    uvicorn.run(
        "sitesift.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        log_config=build_log_config(),
    )


if __name__ == "__main__":
    main()
