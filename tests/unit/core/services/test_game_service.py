import random

import pytest

from aniq.core.services.game_service import (
    GameSession,
    Lifeline,
    LifelineUnavailableError,
    calculate_score,
    time_per_question,
)
from aniq.domain.models.quiz import Character, Difficulty, QuizOption, QuizRound


@pytest.fixture
def quiz_round() -> QuizRound:
    options = tuple(
        QuizOption(character=Character(id=i * 10, name=f"C{i}", image_url="x"), anime_id=i)
        for i in range(1, 5)
    )
    return QuizRound(options=options, correct_character_id=20, correct_anime_id=2)


@pytest.mark.parametrize("difficulty, seconds", [
    (Difficulty.EASY, 20),
    (Difficulty.MEDIUM, 15),
    (Difficulty.HARD, 10),
])
def test_time_per_question(difficulty, seconds):
    assert time_per_question(difficulty) == seconds


def test_score_formula():
    assert calculate_score(10, 1) == 120
    assert calculate_score(10, 3) == 144
    assert calculate_score(7.6, 1) == 115
    assert calculate_score(-3, 1) == 100


def test_correct_answer_scores_and_advances(quiz_round: QuizRound):
    session = GameSession()
    outcome = session.answer(quiz_round, 20, time_left=10)

    assert outcome.correct
    assert outcome.points == 120
    assert session.score == 120
    assert session.current_round == 2
    assert session.lives == 3


def test_wrong_answer_and_timeout_cost_a_life(quiz_round: QuizRound):
    session = GameSession()
    session.answer(quiz_round, 10, time_left=5)
    session.answer(quiz_round, None, time_left=0)

    assert session.lives == 1
    assert session.score == 0
    assert session.current_round == 3


def test_game_over_after_three_misses(quiz_round: QuizRound):
    session = GameSession()
    outcomes = [session.answer(quiz_round, 10, time_left=5) for _ in range(3)]

    assert outcomes[-1].game_over
    assert session.game_over
    assert session.current_round == 3


def test_fifty_fifty_hides_two_wrong_options(quiz_round: QuizRound):
    session = GameSession()
    hidden = session.use_fifty_fifty(quiz_round, random.Random(0))

    assert len(hidden) == 2
    assert 20 not in hidden
    assert not session.is_available(Lifeline.FIFTY_FIFTY)


def test_lifeline_cannot_be_reused_until_it_regenerates(quiz_round: QuizRound):
    session = GameSession()
    session.use_hint()
    with pytest.raises(LifelineUnavailableError):
        session.use_hint()

    for _ in range(2):
        session.answer(quiz_round, 20, time_left=1)
        session.start_round()
    assert not session.is_available(Lifeline.HINT)

    session.answer(quiz_round, 20, time_left=1)
    session.start_round()
    assert session.is_available(Lifeline.HINT)


def test_skip_advances_without_scoring():
    session = GameSession()
    session.use_skip()

    assert session.current_round == 2
    assert session.score == 0
    assert session.lives == 3
    assert not session.is_available(Lifeline.SKIP)


def test_start_round_clears_hidden_options(quiz_round: QuizRound):
    session = GameSession()
    session.use_fifty_fifty(quiz_round, random.Random(0))
    session.start_round()
    assert session.hidden_character_ids == frozenset()
