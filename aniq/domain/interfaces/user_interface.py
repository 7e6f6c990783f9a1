"""Interface for interacting with the player (input/output).

Defines the contract for displaying rounds, status and messages, and for
reading answers, allowing different UI implementations (console, tests).
"""

import abc
from typing import Any, Iterable, Optional

from ..models.quiz import AnimeDetails, QuizRound, TitleDisplay


class UserInterface(abc.ABC):
    """Abstract Base Class for player interaction."""

    @abc.abstractmethod
    def display_round(
        self,
        quiz_round: QuizRound,
        round_number: int,
        title_display: TitleDisplay = TitleDisplay.ROMAJI,
        hidden_character_ids: Iterable[int] = (),
        **kwargs: Any,
    ) -> None:
        """Displays a question with its (visible) options.

        Args:
            quiz_round: The round to show.
            round_number: 1-based round counter.
            title_display: How anime titles are rendered.
            hidden_character_ids: Options removed by a 50/50 lifeline.
            **kwargs: Additional display arguments (e.g. score, lives).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_throttle(self, retry_after_seconds: int, reset_timestamp: int) -> None:
        """Shows that the API asked us to wait, with a concrete countdown."""
        pass

    @abc.abstractmethod
    def display_status(self, remaining: Optional[int], pause_until: Optional[float]) -> None:
        """Shows the rate governor snapshot."""
        pass

    @abc.abstractmethod
    def display_details(self, details: AnimeDetails, title_display: TitleDisplay = TitleDisplay.ROMAJI) -> None:
        pass

    @abc.abstractmethod
    def display_game_over(self, score: int, rounds_played: int) -> None:
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "> ") -> str:
        """Gets input from the player synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.
        """
        pass
