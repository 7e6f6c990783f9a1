"""Domain models for quiz rounds.

A round is built from four anime ("candidates"), one character from each,
and the titles of those anime. These are created fresh for every build
attempt and discarded once handed to the caller.
"""

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from .common import AnimeId, CharacterId

OPTIONS_PER_ROUND = 4


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class TitleDisplay(str, enum.Enum):
    ROMAJI = "romaji"
    ENGLISH = "english"
    BOTH = "both"


# (base pool size, increment every 5 rounds)
POOL_SIZE_TIERS: Dict[Difficulty, Tuple[int, int]] = {
    Difficulty.EASY: (50, 25),
    Difficulty.MEDIUM: (100, 50),
    Difficulty.HARD: (150, 75),
}
MAX_POOL_SIZE = 500


def pool_size_for(round_number: int, difficulty: Difficulty) -> int:
    """Size of the candidate pool for a round; grows every 5 rounds."""
    base, increment = POOL_SIZE_TIERS[Difficulty(difficulty)]
    return min(base + (round_number // 5) * increment, MAX_POOL_SIZE)


@dataclass(frozen=True)
class YearRange:
    start: int = 2000
    end: int = field(default_factory=lambda: date.today().year)

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Year range start ({self.start}) is after end ({self.end}).")

    def as_fuzzy_dates(self) -> Tuple[int, int]:
        """Bounds in AniList FuzzyDateInt form (YYYYMMDD), exclusive on both ends."""
        return self.start * 10000, (self.end + 1) * 10000 - 1


@dataclass(frozen=True)
class PoolFilters:
    """Restricts which anime are eligible for a round."""
    genres: Tuple[str, ...] = ()
    year_range: Optional[YearRange] = field(default_factory=YearRange)  # None: any year

    @property
    def has_genres(self) -> bool:
        return len(self.genres) > 0


@dataclass(frozen=True)
class Character:
    """A character belonging to exactly one anime in a round."""
    id: CharacterId
    name: str
    image_url: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


@dataclass(frozen=True)
class TitleInfo:
    romaji: str
    english: Optional[str] = None

    def display(self, mode: TitleDisplay = TitleDisplay.ROMAJI) -> str:
        """Renders the title according to the player's preference."""
        mode = TitleDisplay(mode)
        if mode is TitleDisplay.ENGLISH:
            return self.english or self.romaji
        if mode is TitleDisplay.BOTH and self.english and self.english != self.romaji:
            return f"{self.romaji} ({self.english})"
        return self.romaji


@dataclass(frozen=True)
class QuizOption:
    character: Character
    anime_id: AnimeId
    title: Optional[TitleInfo] = None


@dataclass(frozen=True)
class QuizRound:
    """One quiz question: four options and the correct answer.

    Every option comes from a distinct anime and carries a distinct
    character; the correct ids always point at one of the options.
    """
    options: Tuple[QuizOption, ...]
    correct_character_id: CharacterId
    correct_anime_id: AnimeId

    def __post_init__(self):
        if len(self.options) != OPTIONS_PER_ROUND:
            raise ValueError(f"A round needs exactly {OPTIONS_PER_ROUND} options, got {len(self.options)}.")
        if len({o.anime_id for o in self.options}) != OPTIONS_PER_ROUND:
            raise ValueError("Round options must come from distinct anime.")
        if len({o.character.id for o in self.options}) != OPTIONS_PER_ROUND:
            raise ValueError("Round options must have distinct characters.")
        matches = [o for o in self.options if o.character.id == self.correct_character_id]
        if len(matches) != 1 or matches[0].anime_id != self.correct_anime_id:
            raise ValueError("Correct answer does not match exactly one option.")

    @property
    def correct_option(self) -> QuizOption:
        return next(o for o in self.options if o.character.id == self.correct_character_id)


@dataclass(frozen=True)
class StaffCredit:
    role: str
    name: str


@dataclass(frozen=True)
class AnimeDetails:
    """Detail blob for a single anime, used for hints."""
    title: TitleInfo
    studios: List[str] = field(default_factory=list)
    staff: List[StaffCredit] = field(default_factory=list)
    start_year: Optional[int] = None
    genres: List[str] = field(default_factory=list)

    @property
    def director(self) -> Optional[str]:
        for credit in self.staff:
            if credit.role == "Director" and credit.name:
                return credit.name
        return None
