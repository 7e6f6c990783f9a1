"""Hints derived from anime details."""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from aniq.domain.models.quiz import AnimeDetails

logger = logging.getLogger(__name__)

HINT_UNAVAILABLE = "Hint unavailable for this anime."


@dataclass(frozen=True)
class Hint:
    kind: str
    text: str


def available_hints(details: AnimeDetails) -> List[Hint]:
    """Every hint that can be built from the details, in a fixed order."""
    hints: List[Hint] = []
    if details.studios:
        hints.append(Hint("studio", f"Produced by {details.studios[0]}"))
    if details.director:
        hints.append(Hint("director", f"Directed by {details.director}"))
    if details.start_year:
        hints.append(Hint("year", f"Released in {details.start_year}"))
    if details.genres:
        hints.append(Hint("genre", f"Genre: {details.genres[0]}"))
    return hints


def pick_hint(details: AnimeDetails, rng: Optional[random.Random] = None) -> Optional[Hint]:
    """Picks one hint at random, or None when the details carry nothing usable."""
    hints = available_hints(details)
    if not hints:
        logger.debug(f"No hint data for '{details.title.romaji}'")
        return None
    return (rng or random).choice(hints)
