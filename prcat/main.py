"""Main entry point for the PR categorization service."""

import argparse
import asyncio
import logging
import sys

from .config import Config, load_config
from .orm.pull_request import AiStatus
from .services import (
    CategorizationService,
    TrackingService,
    WebhookHandler,
    get_db_service,
    init_db_service,
)
from .webhook_server import create_webhook_app


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def run_webhook_server(args, logger, config: Config) -> int:
    """Run webhook server."""
    import uvicorn

    db_service = get_db_service()
    if not config.github:
        logger.warning("No github section configured; categorization will fail for every PR")

    categorization_service = CategorizationService(db_service, config)
    webhook_handler = WebhookHandler(db_service, categorization_service)
    app = create_webhook_app(config, webhook_handler)

    port = args.port or config.server.port
    logger.info("Starting webhook server on %s:%d...", config.server.host, port)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=port,
        log_level="info" if args.verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()
    return 0


async def run_categorize(args, logger, config: Config) -> int:
    """Re-run categorization for one stored pull request."""
    if not args.pr_id:
        logger.error("--pr-id is required for categorize mode")
        return 2

    service = CategorizationService(get_db_service(), config)
    result = await service.categorize_pull_request(args.pr_id)
    if result.status is None:
        logger.info("Skipped: %s", result.message)
        return 1

    logger.info(
        "Result: status=%s category=%s confidence=%s message=%s",
        result.status.value, result.category_name, result.confidence, result.message,
    )
    return 0 if result.status is AiStatus.COMPLETED else 1


async def run_tracking(args, logger, config: Config) -> int:
    """Track or untrack a repository."""
    if not args.repo:
        logger.error("--repo owner/name is required for %s mode", args.mode)
        return 2

    service = TrackingService(get_db_service(), config)
    if args.mode == "track":
        repository = await service.track_repository(args.repo)
    else:
        repository = await service.untrack_repository(args.repo)
    logger.info("%s is_tracked=%s", repository.full_name, repository.is_tracked)
    return 0


MODES = {
    "webhook": run_webhook_server,
    "categorize": run_categorize,
    "track": run_tracking,
    "untrack": run_tracking,
}


async def async_main(args, logger) -> int:
    """Load config, open the database and run the selected mode."""
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        logger.info("Initializing database at %s", config.database.path)
        await init_db_service(config.database.path)
        logger.info("Database initialized successfully")

        return await MODES[args.mode](args, logger, config)

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except (LookupError, ValueError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        try:
            db = get_db_service()
            await db.close()
            logger.info("Database connection closed")
        except RuntimeError:
            # Database wasn't initialized (error during startup)
            pass


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="GitHub pull request mirror with AI categorization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # Run webhook server with config.yaml
  %(prog)s -c myconfig.yaml --port 9000      # Custom config and port
  %(prog)s --mode categorize --pr-id <id>    # Re-run categorization for one PR
  %(prog)s --mode track --repo acme/widgets  # Track a repository and register its webhook
  %(prog)s --mode untrack --repo acme/widgets
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--mode",
        choices=sorted(MODES),
        default="webhook",
        help="Run mode (default: webhook)",
    )
    parser.add_argument("--pr-id", help="Internal pull request id (categorize mode)")
    parser.add_argument("--repo", help="Repository as owner/name (track/untrack modes)")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for webhook server (default: server.port from config)",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())
