"""
Game catalog collaborators.

The catalog is owned elsewhere; the console only needs to enumerate games (for
"apply to all") and to resolve an operator's selection into GameRefs once, so
bulk operations never have to translate between the catalog's surrogate ids and
the provider-facing game codes rules are keyed by.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, runtime_checkable

import httpx

from edgeconsole.backends.memory import read_snapshot
from edgeconsole.domain.models import CatalogGame, GameRef
from edgeconsole.errors import UnknownGameError
from edgeconsole.infrastructure.api_client import build_client, request_json
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)

GAMES_PATH = "/api/admin/games"


@runtime_checkable
class GameCatalogProvider(Protocol):
    def list_games(self) -> List[CatalogGame]:
        ...

    def resolve(self, selectors: Sequence[str]) -> List[GameRef]:
        ...


def _resolve(games: Iterable[CatalogGame], selectors: Sequence[str]) -> List[GameRef]:
    """
    Map each selector (internal id, or game code as a fallback) to a GameRef.
    """
    games = list(games)
    by_internal = {game.internal_id: game for game in games}
    by_code = {game.game_code: game for game in games}
    refs: List[GameRef] = []
    missing: List[str] = []
    for selector in selectors:
        game = by_internal.get(selector) or by_code.get(selector)
        if game is None:
            missing.append(selector)
        else:
            refs.append(game.to_ref())
    if missing:
        raise UnknownGameError(
            f"Unknown game(s): {', '.join(missing)}", details={"selectors": missing}
        )
    return refs


class InMemoryGameCatalog:
    """A catalog that is already loaded (demonstration mode, tests)."""

    def __init__(self, games: Sequence[CatalogGame] = ()) -> None:
        self._games = list(games)

    @classmethod
    def from_snapshot(cls, path: Path | str) -> "InMemoryGameCatalog":
        payload = read_snapshot(Path(path))
        return cls([CatalogGame.model_validate(item) for item in payload.get("games", [])])

    def list_games(self) -> List[CatalogGame]:
        return list(self._games)

    def resolve(self, selectors: Sequence[str]) -> List[GameRef]:
        return _resolve(self._games, selectors)


class HttpGameCatalog:
    """
    Catalog read from the admin API, fetched once and cached for the session.
    """

    def __init__(self, client: Optional[httpx.Client] = None, page_size: int = 100) -> None:
        self._client = client or build_client()
        self.page_size = page_size
        self._games: Optional[List[CatalogGame]] = None

    def list_games(self) -> List[CatalogGame]:
        if self._games is None:
            self._games = self._fetch_all()
        return list(self._games)

    def resolve(self, selectors: Sequence[str]) -> List[GameRef]:
        return _resolve(self.list_games(), selectors)

    def _fetch_all(self) -> List[CatalogGame]:
        games: List[CatalogGame] = []
        page = 1
        while True:
            data = request_json(
                self._client,
                "GET",
                GAMES_PATH,
                params={"page": page, "per_page": self.page_size, "sort_by": "name", "sort_order": "asc"},
            ) or {}
            batch = data.get("games") or []
            for item in batch:
                games.append(
                    CatalogGame(
                        internal_id=str(item["id"]),
                        game_code=str(item.get("game_id") or item["id"]),
                        name=item.get("name", ""),
                        provider=item.get("provider") or "",
                        enabled=bool(item.get("enabled", True)),
                    )
                )
            if not batch or page >= (data.get("total_pages") or 1):
                break
            page += 1
        log.debug("Catalog fetched", extra={"games": len(games)})
        return games


__all__ = ["GameCatalogProvider", "InMemoryGameCatalog", "HttpGameCatalog", "GAMES_PATH"]
