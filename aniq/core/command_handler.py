"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the quiz service and the game session. All player-facing output goes
through the injected UserInterface.
"""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, NamedTuple, Optional

from aniq.core.services.game_service import GameSession, Lifeline, LifelineUnavailableError
from aniq.core.services.hint_service import HINT_UNAVAILABLE, pick_hint
from aniq.core.services.quiz_service import QuizService
from aniq.domain.errors import AniqError, RoundBuildError, ThrottlingError
from aniq.domain.interfaces.cache import KeyValueCache
from aniq.domain.interfaces.user_interface import UserInterface
from aniq.domain.models.common import AnimeId
from aniq.domain.models.quiz import Difficulty, PoolFilters, QuizRound, TitleDisplay

logger = logging.getLogger(__name__)

# Extra wait after a throttle pause before the next attempt.
THROTTLE_WAIT_MARGIN_SECONDS = 0.5
MAX_THROTTLE_WAITS = 5

ANSWER_PROMPT = "Answer 1-4 (f=50/50, s=skip, h=hint, q=quit)"
QUIT_COMMANDS = ("q", "quit", "exit")


class PreloadedRound(NamedTuple):
    """A round being built in the background before it is needed."""
    round_number: int
    task: "asyncio.Task[QuizRound]"


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        quiz_service: QuizService,
        cache_service: KeyValueCache,
        ui: UserInterface,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the CommandHandler with required services."""
        self.quiz_service = quiz_service
        self.cache_service = cache_service
        self.ui = ui
        self.rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep

    async def handle_round(
        self,
        filters: PoolFilters,
        difficulty: Difficulty,
        title_display: TitleDisplay = TitleDisplay.ROMAJI,
        round_number: int = 1,
    ) -> None:
        """Handles the 'round' command: builds one round and prints it with its answer."""
        logger.info(f"Handling 'round' command (round={round_number}, difficulty={difficulty.value})")
        try:
            quiz_round = await self.quiz_service.build_round(round_number, filters, difficulty)
        except ThrottlingError as e:
            self.ui.display_throttle(e.retry_after_seconds, e.reset_timestamp)
            return
        except AniqError as e:
            logger.error(f"Round command failed: {e}", exc_info=True)
            self.ui.display_error(f"Could not build a round: {e}. Please try again.")
            return

        self.ui.display_round(quiz_round, round_number, title_display=title_display)
        self.ui.display_info(f"Answer: {self._describe_correct(quiz_round, title_display)}")

    async def handle_details(self, anime_id: int, title_display: TitleDisplay = TitleDisplay.ROMAJI) -> None:
        """Handles the 'details' command."""
        logger.info(f"Handling 'details' command for anime ID: {anime_id}")
        try:
            details = await self.quiz_service.fetch_entity_detail(AnimeId(anime_id))
        except ThrottlingError as e:
            self.ui.display_throttle(e.retry_after_seconds, e.reset_timestamp)
            return
        except AniqError as e:
            logger.error(f"Details command failed: {e}", exc_info=True)
            self.ui.display_error(f"Could not fetch details for anime {anime_id}: {e}")
            return
        self.ui.display_details(details, title_display)

    def handle_status(self) -> None:
        """Handles the 'status' command."""
        snapshot = self.quiz_service.get_governor_status()
        self.ui.display_status(snapshot.remaining, snapshot.pause_until)

    def handle_clear_cache(self) -> None:
        """Handles the 'clear-cache' command."""
        logger.info("Handling 'clear-cache' command")
        try:
            removed = self.cache_service.clear()
            self.ui.display_info(f"Cache cleared ({removed} entries removed).")
        except Exception as e:
            logger.error(f"Failed to clear cache: {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")

    async def handle_play(
        self,
        filters: PoolFilters,
        difficulty: Difficulty,
        title_display: TitleDisplay = TitleDisplay.ROMAJI,
    ) -> None:
        """Handles the 'play' command: an interactive game until lives run out or the player quits.

        While a question is on screen the next round is already being built
        in the background. If that build fails, the round is built again
        when it is needed.
        """
        session = GameSession(difficulty=difficulty)
        logger.info(f"Starting game (difficulty={difficulty.value}, filters={filters})")
        self.ui.display_info(
            f"New game on {difficulty.value}: {session.lives} lives, "
            f"{session.time_per_question}s per question. Type 'q' to quit."
        )

        quit_requested = False
        preloaded: Optional[PreloadedRound] = None
        try:
            while not session.game_over and not quit_requested:
                session.start_round()
                quiz_round = await self._take_preloaded(preloaded, session.current_round)
                preloaded = None
                if quiz_round is None:
                    quiz_round = await self._build_round_waiting_out_throttle(session.current_round, filters, difficulty)
                if quiz_round is None:
                    break
                next_round = session.current_round + 1
                preloaded = PreloadedRound(
                    next_round,
                    asyncio.create_task(self.quiz_service.build_round(next_round, filters, difficulty)),
                )
                quit_requested = await self._play_round(session, quiz_round, title_display)
        finally:
            if preloaded is not None:
                await self._discard_preloaded(preloaded)

        rounds_played = session.current_round if session.game_over else session.current_round - 1
        self.ui.display_game_over(session.score, rounds_played)

    # --- Play loop internals ---

    async def _take_preloaded(self, preloaded: Optional[PreloadedRound], round_number: int) -> Optional[QuizRound]:
        """Result of the background build for this round, or None if there is none to use."""
        if preloaded is None:
            return None
        if preloaded.round_number != round_number:
            await self._discard_preloaded(preloaded)
            return None
        try:
            return await preloaded.task
        except AniqError as e:
            logger.info(f"Preloading round {round_number} failed, building it now: {e}")
            return None

    @staticmethod
    async def _discard_preloaded(preloaded: PreloadedRound) -> None:
        preloaded.task.cancel()
        # Collects the task's outcome so no exception is left unretrieved.
        await asyncio.gather(preloaded.task, return_exceptions=True)
        logger.debug(f"Discarded preloaded round {preloaded.round_number}")

    async def _build_round_waiting_out_throttle(
        self, round_number: int, filters: PoolFilters, difficulty: Difficulty
    ) -> Optional[QuizRound]:
        """Builds a round, waiting out throttle pauses between attempts. None ends the game."""
        for _ in range(MAX_THROTTLE_WAITS + 1):
            try:
                return await self.quiz_service.build_round(round_number, filters, difficulty)
            except ThrottlingError as e:
                self.ui.display_throttle(e.retry_after_seconds, e.reset_timestamp)
                await self._sleep(e.retry_after_seconds + THROTTLE_WAIT_MARGIN_SECONDS)
            except RoundBuildError as e:
                logger.error(f"Error loading question: {e}")
                self.ui.display_error(f"{e} Try different filters or try again later.")
                return None
            except AniqError as e:
                logger.error(f"Unexpected error loading question: {e}", exc_info=True)
                self.ui.display_error(f"Error loading question: {e}")
                return None
        self.ui.display_error("Still rate limited after several waits. Please try again later.")
        return None

    async def _play_round(self, session: GameSession, quiz_round: QuizRound, title_display: TitleDisplay) -> bool:
        """Runs one question to completion. Returns True when the player quits."""
        deadline = self._clock() + session.time_per_question
        hint_text: Optional[str] = None

        while True:
            self.ui.display_round(
                quiz_round,
                session.current_round,
                title_display=title_display,
                hidden_character_ids=session.hidden_character_ids,
                score=session.score,
                lives=session.lives,
                time_left=deadline - self._clock(),
                lifelines={lifeline.value: session.is_available(lifeline) for lifeline in Lifeline},
                hint=hint_text,
            )
            raw = (await asyncio.to_thread(self.ui.get_prompt, ANSWER_PROMPT)).strip().lower()
            time_left = deadline - self._clock()

            if raw in QUIT_COMMANDS:
                return True
            if raw == "f":
                try:
                    session.use_fifty_fifty(quiz_round, self.rng)
                except LifelineUnavailableError as e:
                    self.ui.display_warning(str(e))
                continue
            if raw == "s":
                try:
                    session.use_skip()
                except LifelineUnavailableError as e:
                    self.ui.display_warning(str(e))
                    continue
                self.ui.display_info(f"Skipped. It was {self._describe_correct(quiz_round, title_display)}.")
                return False
            if raw == "h":
                if hint_text is not None:
                    continue
                try:
                    session.use_hint()
                except LifelineUnavailableError as e:
                    self.ui.display_warning(str(e))
                    continue
                # The timer does not run while the hint is fetched.
                fetch_started = self._clock()
                hint_text = await self._fetch_hint(quiz_round)
                deadline += self._clock() - fetch_started
                continue

            choice = self._parse_choice(raw, quiz_round, session)
            if choice is None:
                continue
            if time_left <= 0:
                self.ui.display_warning("Time's up!")
                choice = None

            outcome = session.answer(quiz_round, choice, time_left)
            if outcome.correct:
                self.ui.display_info(f"Correct! +{outcome.points} points.")
            else:
                self.ui.display_info(f"Wrong. It was {self._describe_correct(quiz_round, title_display)}.")
            return False

    async def _fetch_hint(self, quiz_round: QuizRound) -> str:
        try:
            details = await self.quiz_service.fetch_entity_detail(quiz_round.correct_anime_id)
        except ThrottlingError as e:
            self.ui.display_throttle(e.retry_after_seconds, e.reset_timestamp)
            return "Failed to fetch hint (rate limited)."
        except AniqError as e:
            logger.error(f"Error fetching hint: {e}")
            return "Failed to fetch hint."
        hint = pick_hint(details, self.rng)
        return hint.text if hint else HINT_UNAVAILABLE

    def _parse_choice(self, raw: str, quiz_round: QuizRound, session: GameSession):
        if not raw.isdecimal() or not 1 <= int(raw) <= len(quiz_round.options):
            self.ui.display_warning(f"Please enter a number between 1 and {len(quiz_round.options)}.")
            return None
        option = quiz_round.options[int(raw) - 1]
        if option.character.id in session.hidden_character_ids:
            self.ui.display_warning("That option was removed by 50/50.")
            return None
        return option.character.id

    @staticmethod
    def _describe_correct(quiz_round: QuizRound, title_display: TitleDisplay) -> str:
        option = quiz_round.correct_option
        title = option.title.display(title_display) if option.title else "Unknown Anime"
        return f"{option.character.name} from {title}"
