"""Game session state: lives, score, rounds and lifelines.

Pure bookkeeping with no I/O. The command handler drives one session per
`play` run and feeds it answers together with the time the player had left.
"""

import enum
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from aniq.domain.models.common import CharacterId
from aniq.domain.models.quiz import Difficulty, QuizRound

logger = logging.getLogger(__name__)

STARTING_LIVES = 3
BASE_SCORE = 100
TIME_BONUS_PER_SECOND = 2
ROUND_MULTIPLIER_STEP = 0.1
LIFELINE_REGEN_ROUNDS = 3

TIME_PER_QUESTION: Dict[Difficulty, int] = {
    Difficulty.EASY: 20,
    Difficulty.MEDIUM: 15,
    Difficulty.HARD: 10,
}


class Lifeline(str, enum.Enum):
    FIFTY_FIFTY = "fifty_fifty"
    SKIP = "skip"
    HINT = "hint"


class LifelineUnavailableError(Exception):
    """The lifeline was already used and has not regenerated yet."""


@dataclass(frozen=True)
class AnswerOutcome:
    correct: bool
    points: int
    correct_character_id: CharacterId
    game_over: bool


def time_per_question(difficulty: Difficulty) -> int:
    return TIME_PER_QUESTION[Difficulty(difficulty)]


def calculate_score(time_left: float, round_number: int) -> int:
    """Points for a correct answer: a time bonus, scaled up 10% per round."""
    time_bonus = math.floor(max(0.0, time_left) * TIME_BONUS_PER_SECOND)
    multiplier = 1 + (round_number - 1) * ROUND_MULTIPLIER_STEP
    return math.floor((BASE_SCORE + time_bonus) * multiplier)


@dataclass
class GameSession:
    """One game from the first round until the last life is lost."""
    difficulty: Difficulty = Difficulty.MEDIUM
    lives: int = STARTING_LIVES
    score: int = 0
    current_round: int = 1
    # Round in which each lifeline was last used; absent means available.
    lifeline_used_in: Dict[Lifeline, int] = field(default_factory=dict)
    hidden_character_ids: FrozenSet[CharacterId] = frozenset()

    @property
    def game_over(self) -> bool:
        return self.lives <= 0

    @property
    def time_per_question(self) -> int:
        return time_per_question(self.difficulty)

    def is_available(self, lifeline: Lifeline) -> bool:
        return lifeline not in self.lifeline_used_in

    def start_round(self) -> None:
        """Resets per-round state and regenerates lifelines used long enough ago."""
        self.hidden_character_ids = frozenset()
        for lifeline, used_in in list(self.lifeline_used_in.items()):
            if self.current_round - used_in >= LIFELINE_REGEN_ROUNDS:
                logger.debug(f"Lifeline {lifeline.value} regenerated in round {self.current_round}")
                del self.lifeline_used_in[lifeline]

    def answer(self, quiz_round: QuizRound, character_id: Optional[CharacterId], time_left: float) -> AnswerOutcome:
        """Records an answer; `character_id=None` means the timer ran out."""
        correct_id = quiz_round.correct_character_id
        if character_id is not None and character_id == correct_id:
            points = calculate_score(time_left, self.current_round)
            self.score += points
            self.current_round += 1
            logger.info(f"Correct answer: +{points} points (score {self.score})")
            return AnswerOutcome(True, points, correct_id, game_over=False)

        self.lives -= 1
        logger.info(f"Wrong answer or timeout: {self.lives} lives left")
        if not self.game_over:
            self.current_round += 1
        return AnswerOutcome(False, 0, correct_id, game_over=self.game_over)

    def use_fifty_fifty(self, quiz_round: QuizRound, rng: Optional[random.Random] = None) -> FrozenSet[CharacterId]:
        """Hides two wrong options and returns the ids of every hidden option."""
        if self.hidden_character_ids:
            return self.hidden_character_ids
        self._consume(Lifeline.FIFTY_FIFTY)
        wrong_ids = [
            o.character.id for o in quiz_round.options
            if o.character.id != quiz_round.correct_character_id
        ]
        self.hidden_character_ids = frozenset((rng or random).sample(wrong_ids, 2))
        return self.hidden_character_ids

    def use_skip(self) -> None:
        """Moves to the next round without scoring or losing a life."""
        self._consume(Lifeline.SKIP)
        self.current_round += 1

    def use_hint(self) -> None:
        self._consume(Lifeline.HINT)

    def _consume(self, lifeline: Lifeline) -> None:
        if not self.is_available(lifeline):
            raise LifelineUnavailableError(f"The {lifeline.value} lifeline is recharging.")
        self.lifeline_used_in[lifeline] = self.current_round
