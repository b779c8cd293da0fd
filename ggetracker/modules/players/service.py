"""
Player ranking listing.

Pages of 15 players read from the server's relational database, cached per
server namespace so the nightly reload can invalidate a whole server with one
fill-version bump.
"""

from __future__ import annotations

import math
import time
from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import text

from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.keys import query_key
from ggetracker.core.constants import (
    DEFAULT_PLAYER_ORDER_BY,
    MAX_RESULT_PAGE,
    PAGINATION_LIMIT,
    PLAYER_ORDER_BY_VALUES,
)
from ggetracker.core.database.service import DatabaseService
from ggetracker.core.logging.logger import get_logger
from ggetracker.modules.servers.registry import GameServer, ServerRegistry
from ggetracker.modules.shared.base_service import BaseService

APPLICATION_TIMEZONE = ZoneInfo("Europe/Paris")

_PLAYER_COLUMNS = """
    P.id AS player_id,
    P.name AS player_name,
    A.name AS alliance_name,
    A.id AS alliance_id,
    P.might_current,
    P.might_all_time,
    P.loot_current,
    P.loot_all_time,
    P.honor,
    P.max_honor,
    P.highest_fame,
    P.current_fame,
    P.remaining_relocation_time,
    P.peace_disabled_at,
    P.updated_at,
    P.alliance_rank,
    P.level,
    P.legendary_level
"""

# Whitelisted sort expressions; order_by never reaches SQL unchecked
_ORDER_EXPRESSIONS: Dict[str, str] = {
    name: ("P.name" if name == "player_name" else f"P.{name}")
    for name in PLAYER_ORDER_BY_VALUES
}


class PlayerService(BaseService):
    """
    Paginated player rankings per game server.

    Public Methods
    --------------
    - list_players() -> One cached page of players
    """

    def __init__(
        self,
        accessor: CacheAccessor,
        database: DatabaseService,
        registry: ServerRegistry,
    ) -> None:
        super().__init__(accessor, get_logger(__name__))
        self.db = database
        self.registry = registry

    async def list_players(
        self,
        server: str,
        page: Any = 1,
        order_by: Optional[str] = None,
        order_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Return one page of players for a server.

        Args:
            server: Server name (``DE1``...), case-insensitive
            page: 1-based page number
            order_by: Sort column; unknown values fall back to player_name
            order_type: ``ASC`` or ``DESC``; anything else is ``ASC``

        Returns:
            {
                "duration": "0.012s",
                "pagination": {"current_page": 2, "total_pages": 7, ...},
                "players": [{"player_id": 1234010, ...}, ...]
            }

        Raises:
            InvalidInputError: Unknown server or page out of range
        """
        game_server = self.registry.get(server)
        page_number = self.validate_range(page, "page", 1, MAX_RESULT_PAGE)
        order_column = order_by if order_by in _ORDER_EXPRESSIONS else DEFAULT_PLAYER_ORDER_BY
        direction = "DESC" if str(order_type or "").upper() == "DESC" else "ASC"

        key_suffix = query_key(
            "/players",
            {"page": page_number, "order_by": order_column, "order_type": direction},
        )

        async def produce() -> Dict[str, Any]:
            return await self._load_page(game_server, page_number, order_column, direction)

        return await self._cache.get_or_compute(game_server.name, key_suffix, produce)

    async def _load_page(
        self,
        server: GameServer,
        page: int,
        order_by: str,
        order_type: str,
    ) -> Dict[str, Any]:
        started = time.perf_counter()
        offset = (page - 1) * PAGINATION_LIMIT
        order_expression = _ORDER_EXPRESSIONS[order_by]

        query = text(
            f"SELECT {_PLAYER_COLUMNS} "
            "FROM players P LEFT JOIN alliances A ON P.alliance_id = A.id "
            f"ORDER BY {order_expression} {order_type} NULLS LAST, P.id ASC "
            "LIMIT :limit OFFSET :offset"
        )

        async with self.db.session(server) as session:
            total = (await session.execute(text("SELECT COUNT(*) FROM players"))).scalar_one()
            result = await session.execute(query, {"limit": PAGINATION_LIMIT, "offset": offset})
            rows = [dict(row) for row in result.mappings().all()]

        duration = time.perf_counter() - started
        self.log_operation(
            "list_players",
            server=server.name,
            page=page,
            rows=len(rows),
            duration_ms=round(duration * 1000, 2),
        )

        return {
            "duration": f"{round(duration, 3)}s",
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / PAGINATION_LIMIT),
                "current_items_count": len(rows),
                "total_items_count": total,
            },
            "players": [self._format_player(row, server) for row in rows],
        }

    def _format_player(self, row: Dict[str, Any], server: GameServer) -> Dict[str, Any]:
        updated_at = row.get("updated_at")
        if isinstance(updated_at, datetime):
            updated_at = updated_at.astimezone(APPLICATION_TIMEZONE).strftime("%Y-%m-%d %H:%M")

        peace_disabled_at = row.get("peace_disabled_at")
        if isinstance(peace_disabled_at, datetime):
            peace_disabled_at = peace_disabled_at.isoformat()

        return {
            "player_id": self.registry.add_code(row["player_id"], server),
            "player_name": row["player_name"],
            "alliance_name": row.get("alliance_name"),
            "alliance_id": self.registry.add_code(row.get("alliance_id"), server),
            "alliance_rank": row.get("alliance_rank"),
            "might_current": row.get("might_current"),
            "might_all_time": row.get("might_all_time"),
            "loot_current": row.get("loot_current"),
            "loot_all_time": row.get("loot_all_time"),
            "honor": row.get("honor"),
            "max_honor": row.get("max_honor"),
            "highest_fame": row.get("highest_fame"),
            "current_fame": row.get("current_fame"),
            "remaining_relocation_time": row.get("remaining_relocation_time"),
            "peace_disabled_at": peace_disabled_at,
            "updated_at": updated_at,
            "level": row.get("level"),
            "legendary_level": row.get("legendary_level"),
        }
