"""Main entry point for the econfetch application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from datetime import date, datetime, timedelta
from typing import Annotated, Any, Coroutine, Dict, Optional

import typer

# --- Core Layer ---
from econfetch.core.command_handler import CommandHandler
from econfetch.core.services.fetch_service import FetchService

# --- Domain Layer ---
from econfetch.domain.interfaces.cache import CacheService
from econfetch.domain.interfaces.data_source import DataSource

# --- Infrastructure Layer ---
from econfetch.infrastructure.cache.persistent_cache import PersistentCache
from econfetch.infrastructure.cli.display import ConsoleDisplay
from econfetch.infrastructure.config.settings import (
    get_cache_dir,
    get_config,
    get_default_ttl,
    get_fred_api_key,
    get_rate_limit_timeout,
    get_retry_policy,
    get_serve_stale,
    load_configuration,
)
from econfetch.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging
from econfetch.infrastructure.resilience.api_retry import ApiRetryService
from econfetch.infrastructure.resilience.rate_limiter import RateLimiter
from econfetch.infrastructure.sources.fred_client import FredClient
from econfetch.infrastructure.sources.worldbank_client import DEFAULT_COUNTRY, WorldBankClient

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "fred"
DEFAULT_LOOKBACK_DAYS = 365
DATE_FORMATS = ["%Y-%m-%d"]

# --- Dependency Injection Container (Manual) ---

def build_fetch_service(source: DataSource, cache: CacheService) -> FetchService:
    """Wires one data source to the shared cache with its own limiter and retry service."""
    return FetchService(
        source=source,
        cache=cache,
        rate_limiter=RateLimiter.for_provider(source.name, source.privileged, max_requests=source.rate_limit),
        retry_service=ApiRetryService(policy=get_retry_policy(), provider_name=source.name),
        rate_limit_timeout=get_rate_limit_timeout(),
        stale_on_rate_limit=get_serve_stale(),
    )


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level_name = str(get_config('logging.level', 'WARNING')).upper()
        log_level = getattr(logging, log_level_name, logging.WARNING)
        setup_logging(
            log_level=log_level,
            log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
            log_file=get_config('logging.file'),
        )
        logger.info("Initializing application dependencies...")

        # 2. Infrastructure adapters
        dependencies['ui'] = ConsoleDisplay()
        dependencies['cache_service'] = PersistentCache(
            directory=get_cache_dir(),
            default_ttl=get_default_ttl(),
        )

        # 3. Data sources, each with its own limiter and retry service
        api_key = get_fred_api_key()
        if not api_key:
            logger.warning("FRED API key not found; using the anonymous request budget.")
        dependencies['fred_client'] = FredClient(api_key=api_key)
        dependencies['worldbank_client'] = WorldBankClient(
            default_country=str(get_config('worldbank.default_country', DEFAULT_COUNTRY)),
        )

        fetch_services = {
            source.name: build_fetch_service(source, dependencies['cache_service'])
            for source in (dependencies['fred_client'], dependencies['worldbank_client'])
        }
        logger.info(f"Data sources initialized: {', '.join(fetch_services)}")

        # 4. Command Handler
        dependencies['command_handler'] = CommandHandler(
            fetch_services=fetch_services,
            cache_service=dependencies['cache_service'],
            ui=dependencies['ui'],
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except Exception as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if dependencies.get('ui'):
            dependencies['ui'].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        raise typer.Exit(code=1)


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Builds the dependency container on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def get_handler() -> CommandHandler:
    return get_dependencies()['command_handler']


# --- Typer App Definition ---
app = typer.Typer(
    name="econfetch",
    help="econfetch: cached, rate-limited access to economic data series.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, bool]) -> None:
    """Runs a handler coroutine and exits with status 1 if it reports failure."""
    try:
        ok = asyncio.run(coro)
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        raise typer.Exit(code=130)
    if not ok:
        raise typer.Exit(code=1)

# --- CLI Commands ---

SourceOption = Annotated[
    str,
    typer.Option("--source", "-s", help="Data source to query (fred, worldbank)."),
]


def _as_date(value: Optional[datetime], fallback: date) -> date:
    return value.date() if value is not None else fallback


@app.command()
def fetch(
    series_id: Annotated[str, typer.Argument(help="Series identifier, e.g. UNRATE (fred) or US:NY.GDP.MKTP.CD (worldbank).")],
    start: Annotated[
        Optional[datetime],
        typer.Option("--start", formats=DATE_FORMATS, help="First observation date (YYYY-MM-DD). Defaults to one year before --end."),
    ] = None,
    end: Annotated[
        Optional[datetime],
        typer.Option("--end", formats=DATE_FORMATS, help="Last observation date (YYYY-MM-DD). Defaults to today."),
    ] = None,
    source: SourceOption = DEFAULT_SOURCE,
):
    """Fetch observations for a series, using the cache when possible."""
    end_date = _as_date(end, date.today())
    start_date = _as_date(start, end_date - timedelta(days=DEFAULT_LOOKBACK_DAYS))
    run_async(get_handler().handle_fetch(source, series_id, start_date, end_date))


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Free-text search over series titles.")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=1000, help="Maximum number of results.")] = 20,
    source: SourceOption = DEFAULT_SOURCE,
):
    """Search the provider's series catalogue."""
    run_async(get_handler().handle_search(source, query, limit))


@app.command(name="cache-stats")
def cache_stats_command():
    """Shows cache entry counts and storage size."""
    run_async(get_handler().handle_cache_stats())


@app.command(name="clear-cache")
def clear_cache_command(
    expired: Annotated[bool, typer.Option("--expired", help="Only remove expired entries.")] = False,
    source: Annotated[Optional[str], typer.Option("--source", "-s", help="Only remove entries from this source.")] = None,
):
    """Clears the application cache."""
    run_async(get_handler().handle_clear_cache(expired_only=expired, source=source))

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    try:
        app()
    finally:
        if _dependencies is not None:
            _dependencies['cache_service'].close()


if __name__ == "__main__":
    cli_entry_point()
