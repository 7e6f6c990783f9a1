"""Caller-facing API of the quiz core.

Bundles the question assembler, the catalog and the rate governor behind the
three operations a front end needs. It does not catch anything: a
`ThrottlingError` reaches the caller with its retry window intact, so the UI
can show a countdown and call again.
"""

import logging
from typing import Optional

from aniq.core.services.anime_catalog import AnimeCatalog
from aniq.core.services.question_assembler import QuestionAssembler
from aniq.domain.interfaces.transport import GraphQLTransport
from aniq.domain.models.common import AnimeId
from aniq.domain.models.quiz import AnimeDetails, Difficulty, PoolFilters, QuizRound
from aniq.infrastructure.resilience.rate_governor import GovernorStatus, RateGovernor

logger = logging.getLogger(__name__)


class QuizService:
    """Facade over round building, detail lookups and budget status."""

    def __init__(
        self,
        assembler: QuestionAssembler,
        catalog: AnimeCatalog,
        governor: RateGovernor,
        transport: Optional[GraphQLTransport] = None,
    ):
        self.assembler = assembler
        self.catalog = catalog
        self.governor = governor
        self.transport = transport

    async def build_round(
        self,
        round_number: int,
        filters: Optional[PoolFilters] = None,
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> QuizRound:
        """Builds a validated round. See `QuestionAssembler.build_round`."""
        logger.debug(f"Building round {round_number} (difficulty={Difficulty(difficulty).value}, filters={filters})")
        return await self.assembler.build_round(round_number, filters, difficulty)

    async def fetch_entity_detail(self, anime_id: AnimeId) -> AnimeDetails:
        return await self.catalog.fetch_anime_details(anime_id)

    def get_governor_status(self) -> GovernorStatus:
        return self.governor.status()

    async def aclose(self) -> None:
        """Cancels pending budget timers and closes the transport."""
        self.governor.cancel_timers()
        if self.transport is not None:
            await self.transport.aclose()
