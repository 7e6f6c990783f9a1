"""Main entry point for the aniq application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Annotated, Any, Coroutine, Dict, List, Optional

import typer

# --- Core Layer ---
from aniq.core.command_handler import CommandHandler
from aniq.core.services.anime_catalog import AnimeCatalog
from aniq.core.services.question_assembler import QuestionAssembler
from aniq.core.services.quiz_service import QuizService

# --- Domain Layer ---
from aniq.domain.models.quiz import Difficulty, PoolFilters, TitleDisplay, YearRange

# --- Infrastructure Layer ---
# Config
from aniq.infrastructure.config.settings import (
    get_api_url,
    get_cache_dir,
    get_config,
    get_default_difficulty,
    get_default_year_range,
    get_max_attempts,
    get_rate_limit_settings,
    get_reachability_url,
    get_request_timeout,
    load_configuration,
)
# UI
from aniq.infrastructure.cli.display import ConsoleDisplay
# API
from aniq.infrastructure.api.anilist_client import AniListClient, HttpReachabilityProbe
# Cache
from aniq.infrastructure.cache.caching_service import CachingService
# Resilience
from aniq.infrastructure.resilience.rate_governor import RateGovernor
from aniq.infrastructure.resilience.request_executor import RequestExecutor
# Monitoring
from aniq.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(no_cache: bool = False, log_level: Optional[str] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Args:
        no_cache: Use a memory-only cache instead of the on-disk one.
        log_level: Overrides the configured logging level.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level_name = str(log_level or get_config('logging.level', 'WARNING')).upper()
        setup_logging(
            log_level=getattr(logging, log_level_name, logging.WARNING),
            log_file=get_config('logging.file'),
            log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        )
        logger.info("Configuration and logging initialized.")

        # 2. Instantiate Infrastructure Adapters & Services
        dependencies['ui'] = ConsoleDisplay()
        dependencies['cache_service'] = CachingService(cache_dir=None if no_cache else get_cache_dir())
        dependencies['transport'] = AniListClient(api_url=get_api_url(), timeout=get_request_timeout())
        dependencies['reachability_probe'] = HttpReachabilityProbe(url=get_reachability_url())
        dependencies['rate_governor'] = RateGovernor(
            reachability_probe=dependencies['reachability_probe'],
            **get_rate_limit_settings(),
        )
        dependencies['request_executor'] = RequestExecutor(
            transport=dependencies['transport'],
            governor=dependencies['rate_governor'],
        )

        # 3. Instantiate Core Services (injecting dependencies)
        dependencies['anime_catalog'] = AnimeCatalog(
            executor=dependencies['request_executor'],
            cache=dependencies['cache_service'],
        )
        dependencies['question_assembler'] = QuestionAssembler(
            catalog=dependencies['anime_catalog'],
            max_attempts=get_max_attempts(),
        )
        dependencies['quiz_service'] = QuizService(
            assembler=dependencies['question_assembler'],
            catalog=dependencies['anime_catalog'],
            governor=dependencies['rate_governor'],
            transport=dependencies['transport'],
        )
        logger.info("Core services initialized.")

        # 4. Instantiate Command Handler
        dependencies['command_handler'] = CommandHandler(
            quiz_service=dependencies['quiz_service'],
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


# --- Typer App Definition ---
app = typer.Typer(
    name="aniq",
    help="aniq: guess the anime behind the character, powered by AniList.",
    add_completion=False,
)

_state: Dict[str, Any] = {'no_cache': False, 'log_level': None}


def _command_handler() -> CommandHandler:
    dependencies = create_dependencies(no_cache=_state['no_cache'], log_level=_state['log_level'])
    _state['dependencies'] = dependencies
    return dependencies['command_handler']


def _close_cache() -> None:
    cache_service = _state.get('dependencies', {}).get('cache_service')
    if cache_service is not None:
        cache_service.close()


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command handler to completion, then releases network and cache resources."""
    async def _run() -> None:
        try:
            await coro
        finally:
            quiz_service: Optional[QuizService] = _state.get('dependencies', {}).get('quiz_service')
            try:
                if quiz_service is not None:
                    await quiz_service.aclose()
            finally:
                _close_cache()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        ui = _state.get('dependencies', {}).get('ui')
        if ui is not None:
            ui.display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)


def _build_filters(genres: Optional[List[str]], start_year: Optional[int], end_year: Optional[int], any_year: bool) -> PoolFilters:
    year_range: Optional[YearRange] = None
    if not any_year:
        defaults = get_default_year_range()
        try:
            year_range = YearRange(
                start=start_year if start_year is not None else defaults['start'],
                end=end_year if end_year is not None else defaults['end'],
            )
        except ValueError as e:
            raise typer.BadParameter(str(e))
    return PoolFilters(genres=tuple(genres or ()), year_range=year_range)


def _resolve_difficulty(difficulty: Optional[Difficulty]) -> Difficulty:
    if difficulty is not None:
        return difficulty
    try:
        return Difficulty(get_default_difficulty())
    except ValueError:
        logger.warning(f"Invalid configured difficulty '{get_default_difficulty()}', using medium.")
        return Difficulty.MEDIUM


# --- CLI Commands ---

# Shared options
DifficultyOption = Annotated[
    Optional[Difficulty],
    typer.Option("--difficulty", "-d", case_sensitive=False, help="Pool size and timer. Uses the configured default if not set.")
]
GenreOption = Annotated[
    Optional[List[str]],
    typer.Option("--genre", "-g", help="Restrict to a genre (repeatable, e.g. -g Action -g Comedy).")
]
StartYearOption = Annotated[
    Optional[int],
    typer.Option("--start-year", min=1940, help="First season year to include (default 2000).")
]
EndYearOption = Annotated[
    Optional[int],
    typer.Option("--end-year", min=1940, help="Last season year to include (default: this year).")
]
AnyYearOption = Annotated[
    bool,
    typer.Option("--any-year", help="Do not restrict by year; without genres this uses the cached popularity ranking.")
]
TitlesOption = Annotated[
    TitleDisplay,
    typer.Option("--titles", "-t", case_sensitive=False, help="How anime titles are shown.")
]


@app.command()
def play(
    difficulty: DifficultyOption = None,
    genre: GenreOption = None,
    start_year: StartYearOption = None,
    end_year: EndYearOption = None,
    any_year: AnyYearOption = False,
    titles: TitlesOption = TitleDisplay.ROMAJI,
):
    """Play an interactive game until you run out of lives."""
    filters = _build_filters(genre, start_year, end_year, any_year)
    handler = _command_handler()
    run_async(handler.handle_play(filters, _resolve_difficulty(difficulty), titles))


@app.command(name="round")
def round_command(
    round_number: Annotated[int, typer.Option("--round", "-r", min=1, help="Round number (larger rounds draw from bigger pools).")] = 1,
    difficulty: DifficultyOption = None,
    genre: GenreOption = None,
    start_year: StartYearOption = None,
    end_year: EndYearOption = None,
    any_year: AnyYearOption = False,
    titles: TitlesOption = TitleDisplay.ROMAJI,
):
    """Build a single round and print it together with its answer."""
    filters = _build_filters(genre, start_year, end_year, any_year)
    handler = _command_handler()
    run_async(handler.handle_round(filters, _resolve_difficulty(difficulty), titles, round_number=round_number))


@app.command()
def details(
    anime_id: Annotated[int, typer.Argument(help="AniList media ID.")],
    titles: TitlesOption = TitleDisplay.ROMAJI,
):
    """Show studio, director, year and genres for one anime."""
    handler = _command_handler()
    run_async(handler.handle_details(anime_id, titles))


@app.command()
def status():
    """Show the request budget of this process."""
    handler = _command_handler()
    try:
        handler.handle_status()
    finally:
        _close_cache()


@app.command(name="clear-cache")
def clear_cache_command():
    """Clears the on-disk AniList cache."""
    handler = _command_handler()
    try:
        handler.handle_clear_cache()
    finally:
        _close_cache()


@app.callback()
def main_callback(
    no_cache: Annotated[bool, typer.Option("--no-cache", help="Keep cached AniList data in memory only.")] = False,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...).")] = None,
):
    """Anime character quiz on top of the AniList GraphQL API."""
    _state['no_cache'] = no_cache
    _state['log_level'] = log_level


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
