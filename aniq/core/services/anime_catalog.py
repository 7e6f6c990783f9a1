"""Batch fetchers for AniList data.

Thin wrappers around the request executor. The ranked-id listing and the
single-anime details are cached; the candidate pool and the per-round
character/title batches are ephemeral and always fetched. Throttling errors
pass straight through and nothing is cached for a throttled call.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from aniq.domain.errors import DecodeError
from aniq.domain.interfaces.cache import KeyValueCache
from aniq.domain.models.common import AnimeId, CacheKey, CharacterId, versioned_namespace
from aniq.domain.models.quiz import AnimeDetails, Character, PoolFilters, StaffCredit, TitleInfo
from aniq.infrastructure.api import queries
from aniq.infrastructure.resilience.request_executor import RequestExecutor

logger = logging.getLogger(__name__)

TOP_ANIME_IDS_NAMESPACE = versioned_namespace("aniq_topAnimeIds")
ANIME_DETAILS_NAMESPACE = versioned_namespace("aniq_animeDetails")

MAIN_ROLE = "MAIN"


# --- Decoding helpers ---

def _page_media(data: Dict[str, Any], operation: str) -> List[Dict[str, Any]]:
    page = data.get("Page") if isinstance(data, dict) else None
    media = page.get("media") if isinstance(page, dict) else None
    if not isinstance(media, list):
        raise DecodeError(f"{operation}: response has no Page.media list.")
    return [m for m in media if isinstance(m, dict)]


def _media_ids(data: Dict[str, Any], operation: str) -> List[AnimeId]:
    try:
        return [AnimeId(int(m["id"])) for m in _page_media(data, operation)]
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"{operation}: malformed media id: {e}") from e


def _parse_title(raw: Any) -> TitleInfo:
    if not isinstance(raw, dict) or not raw.get("romaji"):
        raise DecodeError(f"Malformed title block: {raw!r}")
    return TitleInfo(romaji=raw["romaji"], english=raw.get("english") or None)


def _parse_character(raw: Dict[str, Any]) -> Character:
    name = (raw.get("name") or {}).get("full") or ""
    image_url = (raw.get("image") or {}).get("large") or None
    return Character(id=CharacterId(int(raw["id"])), name=name, image_url=image_url)


def parse_anime_details(media: Dict[str, Any]) -> AnimeDetails:
    """Builds AnimeDetails from the raw `Media` block (also the cached shape)."""
    try:
        studios = [n["name"] for n in (media.get("studios") or {}).get("nodes") or [] if n.get("name")]
        staff = [
            StaffCredit(role=edge.get("role") or "", name=((edge.get("node") or {}).get("name") or {}).get("full") or "")
            for edge in (media.get("staff") or {}).get("edges") or []
        ]
        start_year = (media.get("startDate") or {}).get("year")
        return AnimeDetails(
            title=_parse_title(media.get("title")),
            studios=studios,
            staff=staff,
            start_year=int(start_year) if start_year else None,
            genres=[g for g in media.get("genres") or [] if g],
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed anime details: {e}") from e


class AnimeCatalog:
    """Read operations against AniList, funneled through the request executor."""

    def __init__(self, executor: RequestExecutor, cache: KeyValueCache):
        self.executor = executor
        self.cache = cache

    async def fetch_top_anime_ids(self, count: int) -> List[AnimeId]:
        """Most popular anime ids, cached per requested count."""
        key = CacheKey(str(count))
        cached = self.cache.get(TOP_ANIME_IDS_NAMESPACE, key)
        if cached is not None:
            logger.debug(f"Cache hit for top anime IDs (count: {count})")
            return [AnimeId(i) for i in cached]

        logger.debug(f"Cache miss for top anime IDs (count: {count}), fetching...")
        data = await self.executor.execute(
            "GetTopAnime",
            queries.GET_TOP_ANIME,
            {"page": 1, "perPage": count, "sort": ["POPULARITY_DESC"]},
        )
        ids = _media_ids(data, "GetTopAnime")
        self.cache.set(TOP_ANIME_IDS_NAMESPACE, key, list(ids))
        return ids

    async def fetch_anime_details(self, anime_id: AnimeId) -> AnimeDetails:
        """Details for one anime (studio, staff, year, genres), cached per id."""
        key = CacheKey(str(anime_id))
        cached = self.cache.get(ANIME_DETAILS_NAMESPACE, key)
        if cached is not None:
            logger.debug(f"Cache hit for anime details (ID: {anime_id})")
            return parse_anime_details(cached)

        logger.debug(f"Cache miss for anime details (ID: {anime_id}), fetching...")
        data = await self.executor.execute("GetAnimeDetails", queries.GET_ANIME_DETAILS, {"id": anime_id})
        media = data.get("Media") if isinstance(data, dict) else None
        if not isinstance(media, dict):
            raise DecodeError(f"Could not fetch details for anime ID: {anime_id}")
        details = parse_anime_details(media)
        self.cache.set(ANIME_DETAILS_NAMESPACE, key, media)
        return details

    async def fetch_candidate_pool(self, pool_size: int, filters: PoolFilters) -> List[AnimeId]:
        """Anime eligible for a round: genre-filtered, or popularity-ranked within the year range.

        Without genres or a year range this is the cached ranked listing.
        """
        if not filters.has_genres and filters.year_range is None:
            return await self.fetch_top_anime_ids(pool_size)

        variables: Dict[str, Any] = {"perPage": pool_size}
        if filters.year_range is not None:
            variables["startYear"], variables["endYear"] = filters.year_range.as_fuzzy_dates()
        if filters.has_genres:
            variables["genres"] = list(filters.genres)
            data = await self.executor.execute("GetAnimeByGenres", queries.GET_ANIME_BY_GENRES, variables)
            return _media_ids(data, "GetAnimeByGenres")
        data = await self.executor.execute("GetTopAnimeByYear", queries.GET_TOP_ANIME_BY_YEAR, variables)
        return _media_ids(data, "GetTopAnimeByYear")

    async def fetch_characters_batch(
        self, anime_ids: Sequence[AnimeId], role: Optional[str] = MAIN_ROLE
    ) -> Dict[AnimeId, List[Character]]:
        """Characters grouped by anime id, for all ids in one request.

        Anime missing from the response are missing from the result.
        """
        data = await self.executor.execute(
            "GetCharactersBatch",
            queries.GET_CHARACTERS_BATCH,
            {"ids": list(anime_ids), "role": role},
        )
        grouped: Dict[AnimeId, List[Character]] = {}
        try:
            for media in _page_media(data, "GetCharactersBatch"):
                nodes = (media.get("characters") or {}).get("nodes") or []
                grouped[AnimeId(int(media["id"]))] = [_parse_character(n) for n in nodes if isinstance(n, dict)]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"GetCharactersBatch: malformed character data: {e}") from e
        return grouped

    async def fetch_titles_batch(self, anime_ids: Sequence[AnimeId]) -> Dict[AnimeId, TitleInfo]:
        """Titles keyed by anime id; anime with a malformed title are left out."""
        data = await self.executor.execute("GetTitlesBatch", queries.GET_TITLES_BATCH, {"ids": list(anime_ids)})
        titles: Dict[AnimeId, TitleInfo] = {}
        for media in _page_media(data, "GetTitlesBatch"):
            try:
                titles[AnimeId(int(media["id"]))] = _parse_title(media.get("title"))
            except (DecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping title for media {media.get('id')}: {e}")
        return titles
