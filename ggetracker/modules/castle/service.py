"""
Live castle analysis.

Purpose
-------
Read a castle's layout straight from the live game server and reshape it
into a structured document (buildings, towers, defenses, gates, grounds,
construction items).

Architecture Notes
------------------
- The game proxy keeps one session per zone, so every call goes through the
  castle admission queue: one ``gbl`` to clear the session, the ``jca``
  castle request, then ``gbl`` again
- Results are cached for 60 s in the unversioned ``castle`` namespace;
  live data does not follow the nightly reload
- The cache key carries the full public id (server code included)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.keys import query_key
from ggetracker.core.constants import CASTLE_CACHE_NAMESPACE, CASTLE_CACHE_TTL_SECONDS
from ggetracker.core.exceptions import NotFoundError, UpstreamError
from ggetracker.core.http.upstream import UpstreamClient
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.queue.admission import AdmissionQueue
from ggetracker.modules.servers.registry import GameServer, ServerRegistry
from ggetracker.modules.shared.base_service import BaseService


def _at(item: Sequence[Any], index: int) -> Any:
    return item[index] if len(item) > index else None


def map_construction(item: Sequence[Any]) -> Dict[str, Any]:
    """
    Map one raw construction tuple to named fields.

    Hit points are a percentage, so a fully intact object has a damage
    factor of 0.
    """
    hit_points = _at(item, 7)
    rotation = _at(item, 4)
    return {
        "wodID": _at(item, 0),
        "objectID": _at(item, 1),
        "positionX": _at(item, 2),
        "positionY": _at(item, 3),
        "rotation": rotation % 2 if isinstance(rotation, int) else rotation,
        "constructionCompletionInSec": _at(item, 5),
        "buildingState": _at(item, 6),
        "hitPoints": hit_points,
        "constructionBoostAtStart": _at(item, 8),
        "efficiency": _at(item, 9),
        "damageType": _at(item, 10),
        "inDistrictID": _at(item, 14),
        "districtSlotID": _at(item, 15),
        "damageFactor": (100 - float(hit_points)) / 100 if hit_points is not None else None,
    }


def map_castle(gca: Dict[str, Any]) -> Dict[str, Any]:
    """Reshape a raw ``gca`` payload into the analysis document."""
    owner = gca.get("O") or {}
    area = gca.get("A") or []

    def mapped(field: str) -> List[Dict[str, Any]]:
        return [map_construction(item) for item in gca.get(field) or []]

    return {
        "playerName": owner.get("N"),
        "castleName": _at(area, 10),
        "castleType": _at(area, 0),
        "level": owner.get("L"),
        "legendaryLevel": owner.get("LL"),
        "positionX": _at(area, 1),
        "positionY": _at(area, 2),
        "data": {
            "buildings": mapped("BD"),
            "towers": mapped("T"),
            "defenses": mapped("D"),
            "gates": mapped("G"),
            "grounds": mapped("BG"),
        },
        "constructionItems": {
            str(item["OID"]): [[entry["CID"], entry["S"]] for entry in item.get("CIL") or []]
            for item in gca.get("CI") or []
        },
    }


class CastleService(BaseService):
    """
    Castle analysis through the castle admission queue.

    Public Methods
    --------------
    - get_castle_analysis() -> Structured layout of one castle
    """

    def __init__(
        self,
        accessor: CacheAccessor,
        upstream: UpstreamClient,
        queue: AdmissionQueue,
        registry: ServerRegistry,
    ) -> None:
        super().__init__(accessor, get_logger(__name__))
        self._upstream = upstream
        self._queue = queue
        self.registry = registry

    async def get_castle_analysis(self, castle_id: Union[str, int]) -> Dict[str, Any]:
        """
        Return the analysis document of a castle.

        Args:
            castle_id: Public castle id (server-local id + 3-digit server code)

        Raises:
            InvalidInputError: Malformed id or unknown server code
            UpstreamError: The game proxy answered with a failure
            NotFoundError: The game server returned no castle
            AdmissionJobError: Any other failure inside the queued job
        """
        verified_id = self.registry.verify_id(castle_id)
        local_id, code = self.registry.split_request_id(verified_id)
        server = self.registry.by_code(code)

        key_suffix = query_key(f"/castle/analysis/{verified_id}")

        async def produce() -> Dict[str, Any]:
            return await self._queue.run(
                lambda: self._fetch_analysis(server, local_id, verified_id),
                passthrough=(UpstreamError, NotFoundError),
            )

        return await self._cache.get_or_compute(
            CASTLE_CACHE_NAMESPACE,
            key_suffix,
            produce,
            ttl_seconds=CASTLE_CACHE_TTL_SECONDS,
            versioned=False,
        )

    async def _fetch_analysis(
        self,
        server: GameServer,
        local_id: int,
        castle_id: int,
    ) -> Dict[str, Any]:
        await self._clear_session(server)
        try:
            data = await self._upstream.send_command(
                server.zone, "jca", f'"CID":{local_id},"KID":0'
            )
        finally:
            await self._clear_session(server)

        gca: Optional[Dict[str, Any]] = ((data or {}).get("content") or {}).get("gca")
        if not gca:
            raise NotFoundError("castle", castle_id, "No castles found for this player")

        self.log_operation("get_castle_analysis", server=server.name, castle_id=castle_id)
        return map_castle(gca)

    async def _clear_session(self, server: GameServer) -> None:
        try:
            await self._upstream.send_command(server.zone, "gbl")
        except UpstreamError as exc:
            self.log.warning(
                "Game session clear failed",
                extra={"server": server.name, "zone": server.zone, "error": str(exc)},
            )
