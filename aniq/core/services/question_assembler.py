"""Assembles quiz rounds from AniList data.

One build attempt runs these stages, each depending on the previous one:

1. fetch a candidate pool of anime ids sized by round and difficulty
2. sample four distinct ids uniformly at random
3. fetch the characters of those four anime in one batch, keep only
   characters with an image
4. pick one unused character per anime
5. fetch titles for the anime that contributed a character
6. pair characters with titles and pick the correct answer

Any failure other than throttling restarts the attempt from stage 1, up to
`max_attempts`. A `ThrottlingError` is re-raised immediately so the caller
can wait out the pause and invoke the assembler again.
"""

import logging
import random
from typing import Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from aniq.core.services.anime_catalog import MAIN_ROLE, AnimeCatalog
from aniq.domain.errors import DataError, RoundBuildError, ThrottlingError
from aniq.domain.events.api_events import RoundAttemptFailed, dispatch_event
from aniq.domain.models.common import AnimeId, CharacterId
from aniq.domain.models.quiz import (
    OPTIONS_PER_ROUND,
    Character,
    Difficulty,
    PoolFilters,
    QuizOption,
    QuizRound,
    pool_size_for,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3

# Rounds (inclusive) that only use main characters before any role is allowed.
MAIN_CHARACTER_ROUNDS = 15


def sample_distinct(items: Sequence[T], k: int, rng: random.Random) -> List[T]:
    """Draws up to `k` distinct items uniformly at random without replacement.

    Duplicates in `items` are collapsed first. The result is a shuffle of the
    whole collection sliced to `k`, so every k-subset is equally likely
    regardless of the input order. Returns fewer than `k` items only when
    fewer distinct items exist.
    """
    pool = list(dict.fromkeys(items))
    rng.shuffle(pool)
    return pool[:k]


def select_unique_characters(
    anime_ids: Sequence[AnimeId],
    characters_by_anime: Dict[AnimeId, List[Character]],
    rng: random.Random,
    wanted: int = OPTIONS_PER_ROUND,
) -> List[Tuple[AnimeId, Character]]:
    """Picks one character per anime, in order, never reusing a character id.

    Anime with no eligible characters, or whose characters were all already
    chosen, are skipped.
    """
    used_ids: Set[CharacterId] = set()
    selected: List[Tuple[AnimeId, Character]] = []
    for anime_id in anime_ids:
        candidates = [c for c in characters_by_anime.get(anime_id, []) if c.id not in used_ids]
        if not candidates:
            if characters_by_anime.get(anime_id):
                logger.debug(f"All characters already used for anime {anime_id}")
            else:
                logger.debug(f"No characters found or media missing for anime {anime_id} in batch response.")
            continue
        choice = rng.choice(candidates)
        used_ids.add(choice.id)
        selected.append((anime_id, choice))
        if len(selected) == wanted:
            break
    return selected


def character_role_for(round_number: int) -> Optional[str]:
    """Main characters only in early rounds; any role afterwards."""
    if round_number <= MAIN_CHARACTER_ROUNDS:
        return MAIN_ROLE
    return None


class QuestionAssembler:
    """Builds validated quiz rounds with bounded retries."""

    def __init__(
        self,
        catalog: AnimeCatalog,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.catalog = catalog
        self.max_attempts = max_attempts
        self.rng = rng or random.Random()

    async def build_round(
        self,
        round_number: int,
        filters: Optional[PoolFilters] = None,
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> QuizRound:
        """Builds one round.

        Args:
            round_number: 1-based round counter; larger rounds use larger pools.
            filters: Genre and year restrictions for the candidate pool.
            difficulty: Pool size tier.

        Raises:
            ThrottlingError: Immediately, on the first throttled call.
            RoundBuildError: After `max_attempts` failed attempts.
        """
        filters = filters or PoolFilters()
        difficulty = Difficulty(difficulty)
        pool_size = pool_size_for(round_number, difficulty)
        role = character_role_for(round_number)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                quiz_round = await self._build_once(pool_size, filters, role)
                logger.info(f"Built round {round_number} on attempt {attempt} (pool size {pool_size}).")
                return quiz_round
            except ThrottlingError as e:
                logger.warning(f"Rate limit hit while building round {round_number} (attempt {attempt}): {e}")
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"Attempt {attempt}/{self.max_attempts} to build round {round_number} failed: {e}")
                dispatch_event(RoundAttemptFailed(
                    attempt_number=attempt,
                    max_attempts=self.max_attempts,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ))

        logger.error(f"Giving up on round {round_number} after {self.max_attempts} attempts.")
        raise RoundBuildError(self.max_attempts, last_error)

    async def _build_once(self, pool_size: int, filters: PoolFilters, role: Optional[str]) -> QuizRound:
        anime_ids = await self.catalog.fetch_candidate_pool(pool_size, filters)
        if not anime_ids:
            raise DataError("No anime found matching the criteria.")

        sampled_ids = sample_distinct(anime_ids, OPTIONS_PER_ROUND, self.rng)

        characters_by_anime = await self.catalog.fetch_characters_batch(sampled_ids, role=role)
        eligible = {
            anime_id: [c for c in characters if c.has_image]
            for anime_id, characters in characters_by_anime.items()
        }

        selected = select_unique_characters(sampled_ids, eligible, self.rng)
        if len(selected) < OPTIONS_PER_ROUND:
            raise DataError(f"Could only select {len(selected)} unique characters.")

        origin_ids = [anime_id for anime_id, _ in selected]
        titles = await self.catalog.fetch_titles_batch(origin_ids)

        options = tuple(
            QuizOption(character=character, anime_id=anime_id, title=titles.get(anime_id))
            for anime_id, character in selected
        )
        correct = options[self.rng.randrange(len(options))]
        return QuizRound(
            options=options,
            correct_character_id=correct.character.id,
            correct_anime_id=correct.anime_id,
        )
