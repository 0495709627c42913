"""Main entry point for the social backend using Typer and Pydantic Settings."""

import asyncio

import typer
import uvicorn
from loguru import logger
from rich.console import Console

from social_backend.logging import setup_logging
from social_backend.services.health_check_service import HealthCheckResult, ServerState
from social_backend.services.registry import get_service_registry
from social_backend.settings import Settings, get_settings

app = typer.Typer()
console = Console()


HOST_OPTION = typer.Option(
    None,
    help="Host to bind the server to (overrides SOCIAL_BACKEND_HOST)",
    metavar="<server>",
)  # fmt: skip
PORT_OPTION = typer.Option(
    None,
    help="Port to bind the server to (overrides SOCIAL_BACKEND_PORT)",
    metavar="<port>",
)  # fmt: skip
RELOAD_OPTION = typer.Option(
    None,
    help="Enable/disable auto-reload (overrides SOCIAL_BACKEND_RELOAD)",
)  # fmt: skip
LOG_LEVEL_OPTION = typer.Option(
    None,
    help="Log level (overrides SOCIAL_BACKEND_LOG_LEVEL)",
    metavar="<level>",
    case_sensitive=False,
)  # fmt: skip
RABBITMQ_URL_OPTION = typer.Option(
    None,
    help="Broker URL (overrides SOCIAL_BACKEND_RABBITMQ_URL)",
    metavar="<amqp-url>",
)  # fmt: skip
REDIS_URL_OPTION = typer.Option(
    None,
    help="Cache URL (overrides SOCIAL_BACKEND_REDIS_URL)",
    metavar="<redis-url>",
)  # fmt: skip
SERVICES_OPTION = typer.Option(
    None,
    "-s",
    "--services",
    help="Service roles: post, search, media or a combination (e.g., 'search,media'). Omit for all.",
    metavar="<services>",
)  # fmt: skip


def _update_settings(
    host: str | None,
    port: int | None,
    log_level: str | None,
    reload: bool | None,
    rabbitmq_url: str | None,
    redis_url: str | None,
    services: str | None,
) -> None:
    """Update settings with CLI overrides.

    Args:
        host: Host override
        port: Port override
        log_level: Log level override
        reload: Reload override
        rabbitmq_url: Broker URL override
        redis_url: Cache URL override
        services: Service role configuration override
    """
    settings = get_settings()

    # Apply overrides
    if host is not None:
        settings.host = host
    if port is not None:
        settings.port = port
    if log_level is not None:
        settings.log_level = log_level.upper()
    if reload is not None:
        settings.reload = reload
    if rabbitmq_url is not None:
        settings.rabbitmq_url = rabbitmq_url
    if redis_url is not None:
        settings.redis_url = redis_url
    if services is not None:
        settings.services = services


async def _run_checks(settings: Settings) -> HealthCheckResult:
    from social_backend.app import perform_startup_checks, shutdown_services

    registry = get_service_registry()
    try:
        return await perform_startup_checks(settings, registry)
    finally:
        await shutdown_services(registry)


def _print_check_results(result: HealthCheckResult) -> None:
    """Display each dependency check on the console."""
    color = {"operational": "green", "degraded": "yellow"}.get(result.server_state, "red")
    console.print(f"[bold]Server state:[/bold] [{color}]{result.server_state}[/{color}]")
    console.print(f"Active services: {', '.join(result.active_services)}\n")
    for check_result in result.checks:
        mark = "[green]ok[/green]" if check_result.success else "[red]failed[/red]"
        console.print(f"  {check_result.check}: {mark} {check_result.message} ({check_result.execution_time_ms:.1f} ms)")


@app.command()
def run(
    host: str = HOST_OPTION,
    port: int = PORT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    reload: bool = RELOAD_OPTION,
    rabbitmq_url: str = RABBITMQ_URL_OPTION,
    redis_url: str = REDIS_URL_OPTION,
    services: str = SERVICES_OPTION,
) -> None:
    """Run the social backend server."""
    # Update settings with CLI overrides
    _update_settings(host, port, log_level, reload, rabbitmq_url, redis_url, services)

    # Get final settings
    settings = get_settings()

    # Setup logging
    setup_logging(settings.log_level)

    logger.info(f"Starting social backend on {settings.host}:{settings.port}")
    logger.info(f"Services: {settings.services or 'all'}")
    logger.info(f"Reload: {settings.reload}")

    # Run the app - use import string for reload mode
    if settings.reload:
        uvicorn.run(
            "social_backend.app:app",
            host=settings.host,
            port=settings.port,
            reload=True,
            log_level=settings.log_level.lower(),
        )
    else:
        from social_backend.app import create_app

        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level=settings.log_level.lower(),
        )


@app.command()
def check(
    log_level: str = LOG_LEVEL_OPTION,
    rabbitmq_url: str = RABBITMQ_URL_OPTION,
    redis_url: str = REDIS_URL_OPTION,
    services: str = SERVICES_OPTION,
) -> None:
    """Connect to the broker and ping the cache, then exit."""
    # Update settings with CLI overrides
    _update_settings(None, None, log_level, False, rabbitmq_url, redis_url, services)

    # Get final settings
    settings = get_settings()

    # Setup logging
    setup_logging(settings.log_level)

    logger.info("Running startup checks only")

    try:
        result = asyncio.run(_run_checks(settings))
    except SystemExit:
        raise
    except Exception as e:
        logger.error(f"Startup checks failed: {e}")
        raise SystemExit(1) from None

    _print_check_results(result)
    if result.server_state != ServerState.OPERATIONAL:
        logger.error(f"Startup checks completed with server state {result.server_state}")
        raise SystemExit(1)
    logger.info("Startup checks completed successfully")


if __name__ == "__main__":
    app()
