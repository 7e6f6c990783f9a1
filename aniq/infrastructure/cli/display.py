import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from rich.align import Align
from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aniq.domain.interfaces.user_interface import UserInterface
from aniq.domain.models.quiz import AnimeDetails, QuizRound, TitleDisplay

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Anime"

LIFELINE_LABELS = {
    "fifty_fifty": "50/50 (f)",
    "skip": "Skip (s)",
    "hint": "Hint (h)",
}


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self):
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_round(
        self,
        quiz_round: QuizRound,
        round_number: int,
        title_display: TitleDisplay = TitleDisplay.ROMAJI,
        hidden_character_ids: Iterable[int] = (),
        **kwargs: Any,
    ) -> None:
        """Renders the question and its options as a table.

        Args:
            quiz_round: The round to show.
            round_number: 1-based round counter.
            title_display: How anime titles are rendered.
            hidden_character_ids: Options removed by a 50/50 lifeline.
            **kwargs: Optional extras:
                - score, lives, time_left: game state shown in the header
                - lifelines: mapping of lifeline name to availability
                - hint: hint text to show under the options
        """
        hidden = set(hidden_character_ids)
        logger.debug(f"display_round called: round={round_number}, hidden={len(hidden)}")

        header_parts = [f"[bold cyan]Round {round_number}[/bold cyan]"]
        if kwargs.get("score") is not None:
            header_parts.append(f"Score: [bold]{kwargs['score']}[/bold]")
        if kwargs.get("lives") is not None:
            header_parts.append(f"Lives: [bold red]{'♥' * kwargs['lives']}[/bold red]")
        if kwargs.get("time_left") is not None:
            header_parts.append(f"Time: [bold]{max(0, int(kwargs['time_left']))}s[/bold]")
        header = " [dim]·[/dim] ".join(header_parts)

        image_url = quiz_round.correct_option.character.image_url
        question = Text.assemble(
            ("Who is this character?\n", "bold white"),
            (image_url or "(no image)", "underline blue"),
        )
        self.console.print("")
        self.console.print(Panel(question, title=header, title_align="left", border_style="cyan", box=ROUNDED, padding=(0, 1)))

        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Character", style="bold")
        table.add_column("Anime", style="white")
        for index, option in enumerate(quiz_round.options, 1):
            if option.character.id in hidden:
                table.add_row(str(index), "[dim]---[/dim]", "[dim]---[/dim]")
                continue
            title = option.title.display(title_display) if option.title else UNKNOWN_TITLE
            table.add_row(str(index), Text(option.character.name), Text(title))
        self.console.print(table)

        lifelines: Optional[Dict[str, bool]] = kwargs.get("lifelines")
        if lifelines:
            labels = [
                f"[green]{LIFELINE_LABELS.get(name, name)}[/green]" if available
                else f"[dim strike]{LIFELINE_LABELS.get(name, name)}[/dim strike]"
                for name, available in lifelines.items()
            ]
            self.console.print("Lifelines: " + "  ".join(labels))

        if kwargs.get("hint"):
            self.console.print(Panel(Text(kwargs["hint"], style="white"), title="[bold magenta]Hint[/bold magenta]",
                                     border_style="magenta", box=SIMPLE, padding=(0, 1)))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_throttle(self, retry_after_seconds: int, reset_timestamp: int) -> None:
        """Shows the rate limit pause with the wall-clock time it ends."""
        reset_at = datetime.fromtimestamp(reset_timestamp).strftime("%H:%M:%S")
        panel = Panel(
            Text(
                f"AniList rate limit reached. Waiting {retry_after_seconds}s (until {reset_at}) before continuing.",
                style="white",
            ),
            title="[bold yellow]Rate Limited[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_status(self, remaining: Optional[int], pause_until: Optional[float]) -> None:
        """Shows the rate governor snapshot as a small table."""
        table = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="bold")
        table.add_row("Requests remaining", "unknown" if remaining is None else str(remaining))
        if pause_until is None:
            table.add_row("Paused", "no")
        else:
            seconds_left = max(0, int(pause_until - time.time()))
            until = datetime.fromtimestamp(pause_until).strftime("%H:%M:%S")
            table.add_row("Paused", f"yes, {seconds_left}s left (until {until})")
        self.console.print(Align.center(table))

    def display_details(self, details: AnimeDetails, title_display: TitleDisplay = TitleDisplay.ROMAJI) -> None:
        table = Table(show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Title", Text(details.title.display(title_display)))
        table.add_row("Studio", Text(", ".join(details.studios) or "-"))
        table.add_row("Director", Text(details.director or "-"))
        table.add_row("Year", str(details.start_year) if details.start_year else "-")
        table.add_row("Genres", Text(", ".join(details.genres) or "-"))
        self.console.print(table)

    def display_game_over(self, score: int, rounds_played: int) -> None:
        table = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Content", style="cyan")
        table.add_row("[bold cyan]Game Over[/bold cyan]")
        table.add_row(f"Final score: [bold]{score}[/bold]")
        table.add_row(f"Rounds played: [bold]{rounds_played}[/bold]")
        self.console.print("")
        self.console.print(Align.center(table))
        self.console.print("")

    def get_prompt(self, prompt_message: str = "> ") -> str:
        """Gets input from the player using the rich console.

        Args:
            prompt_message: The message to display before the input cursor.

        Returns:
            The text input by the player, stripped.
        """
        return self.console.input(f"[bold green]{prompt_message}[/bold green] ").strip()
