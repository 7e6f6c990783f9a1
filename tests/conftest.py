import pytest
from typer.testing import CliRunner
from typing import Any, Dict, List, Optional, Tuple

from aniq.domain.interfaces.reachability import ReachabilityProbe
from aniq.domain.interfaces.transport import GraphQLTransport, TransportResponse
from aniq.infrastructure.config.settings import clear_test_config, set_config_for_testing
from aniq.infrastructure.cli.display import ConsoleDisplay


def make_anime(anime_id: int, characters: int = 2, with_images: bool = True, genres=("Action",), english: Optional[str] = None) -> Dict[str, Any]:
    """One anime record of the fake AniList world."""
    return {
        "title": {"romaji": f"Anime {anime_id}", "english": english},
        "genres": list(genres),
        "characters": [
            {
                "id": anime_id * 100 + n,
                "name": {"full": f"Character {anime_id}-{n}"},
                "image": {"large": f"https://img.example/{anime_id}/{n}.png" if with_images else None},
            }
            for n in range(1, characters + 1)
        ],
        "details": {
            "title": {"romaji": f"Anime {anime_id}", "english": english},
            "studios": {"nodes": [{"name": f"Studio {anime_id}"}]},
            "staff": {"edges": [{"role": "Director", "node": {"name": {"full": f"Director {anime_id}"}}}]},
            "startDate": {"year": 2000 + anime_id},
            "genres": list(genres),
        },
    }


class FakeAniList(GraphQLTransport):
    """In-memory stand-in for the AniList endpoint.

    Answers each operation from `anime` (id -> record from make_anime) and
    records every call. Queue exceptions with `fail_next` to simulate errors.
    """

    def __init__(self, anime: Dict[int, Dict[str, Any]], headers: Optional[Dict[str, str]] = None):
        self.anime = anime
        self.headers = headers if headers is not None else {"X-RateLimit-Remaining": "89"}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._failures: Dict[str, List[Exception]] = {}
        self.closed = False

    def fail_next(self, operation: str, error: Exception, times: int = 1) -> None:
        self._failures.setdefault(operation, []).extend([error] * times)

    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]

    async def request(self, query, variables=None) -> TransportResponse:
        operation = query.split("query ", 1)[1].split("(", 1)[0]
        variables = dict(variables or {})
        self.calls.append((operation, variables))
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)
        data = getattr(self, f"_{operation}")(variables)
        return TransportResponse(data=data, headers=dict(self.headers))

    async def aclose(self) -> None:
        self.closed = True

    def _page(self, media):
        return {"Page": {"media": media}}

    def _GetTopAnime(self, variables):
        return self._page([{"id": i} for i in list(self.anime)[:variables["perPage"]]])

    def _GetTopAnimeByYear(self, variables):
        return self._page([{"id": i} for i in list(self.anime)[:variables["perPage"]]])

    def _GetAnimeByGenres(self, variables):
        wanted = set(variables["genres"])
        ids = [i for i, a in self.anime.items() if wanted & set(a["genres"])]
        return self._page([{"id": i} for i in ids[:variables["perPage"]]])

    def _GetCharactersBatch(self, variables):
        return self._page([
            {"id": i, "characters": {"nodes": self.anime[i]["characters"]}}
            for i in variables["ids"] if i in self.anime
        ])

    def _GetTitlesBatch(self, variables):
        return self._page([{"id": i, "title": self.anime[i]["title"]} for i in variables["ids"] if i in self.anime])

    def _GetAnimeDetails(self, variables):
        record = self.anime.get(variables["id"])
        return {"Media": record["details"] if record else None}


class FakeClock:
    """Manually advanced wall clock (epoch seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProbe(ReachabilityProbe):
    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.calls = 0

    async def is_reachable(self) -> bool:
        self.calls += 1
        return self.reachable


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def anime_factory():
    """Builder for custom anime records (see make_anime)."""
    return make_anime


@pytest.fixture
def anime_world():
    """Six anime (ids 1-6), two characters each, all with images."""
    return {i: make_anime(i) for i in range(1, 7)}


@pytest.fixture
def fake_anilist(anime_world):
    return FakeAniList(anime_world)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def reachable_probe():
    return FakeProbe(reachable=True)


@pytest.fixture
def unreachable_probe():
    return FakeProbe(reachable=False)


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay to capture output easily.
    Patches the ConsoleDisplay where main.py imports it.
    """
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch('aniq.main.ConsoleDisplay', return_value=mock)
    return mock


@pytest.fixture
def patched_transport(mocker, fake_anilist):
    """Routes the application's AniList client and reachability probe to fakes."""
    mocker.patch('aniq.main.AniListClient', return_value=fake_anilist)
    mocker.patch('aniq.main.HttpReachabilityProbe', return_value=FakeProbe(reachable=False))
    return fake_anilist


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Keeps tests away from the real ~/.aniq cache and config values."""
    set_config_for_testing({'cache.dir': str(tmp_path / "cache"), 'logging.level': 'WARNING'})
    yield
    clear_test_config()
