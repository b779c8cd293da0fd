"""
Game server registry.

Maps the public server names (``DE1``, ``FR1``...) to their databases, their
3-digit code and the game zone the live proxy addresses. Every id the API
exposes carries the owning server's code as its last three digits, e.g.
player ``1234`` on DE1 (code ``010``) is published as ``1234010``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union

from ggetracker.core.constants import MAX_PUBLIC_ID, SERVER_CODE_LENGTH
from ggetracker.core.exceptions import InvalidInputError

BASE_SQL_DB_NAME = "empire-ranking"
BASE_OLAP_DB_NAME = "empire_ranking"


@dataclass(frozen=True, slots=True)
class GameServer:
    name: str
    code: str
    zone: str
    sql_database: str
    olap_database: str
    disabled: bool = False


def _server(name: str, code: str, zone: str, suffix: str = "", olap_suffix: str = "") -> GameServer:
    sql = f"{BASE_SQL_DB_NAME}-{suffix}" if suffix else BASE_SQL_DB_NAME
    olap = f"{BASE_OLAP_DB_NAME}_{olap_suffix or suffix}" if suffix else BASE_OLAP_DB_NAME
    return GameServer(name=name, code=code, zone=zone, sql_database=sql, olap_database=olap)


DEFAULT_SERVERS: Tuple[GameServer, ...] = (
    _server("INT1", "071", "EmpireEx", "int1"),
    _server("DE1", "010", "EmpireEx_2", "de1"),
    _server("FR1", "020", "EmpireEx_3"),
    _server("CZ1", "030", "EmpireEx_4", "cz1"),
    _server("PL1", "065", "EmpireEx_5", "pl1", "PL1"),
    _server("PT1", "055", "EmpireEx_6", "pt1", "PT1"),
    GameServer(
        name="INT2",
        code="",
        zone="EmpireEx_7",
        sql_database="",
        olap_database="",
        disabled=True,
    ),
    _server("ES1", "074", "EmpireEx_8", "es1"),
    _server("IT1", "075", "EmpireEx_9", "it1", "IT1"),
    _server("TR1", "090", "EmpireEx_10", "tr1"),
    _server("NL1", "050", "EmpireEx_11", "nl1"),
    _server("HU1", "015", "EmpireEx_12", "hu1"),
    _server("SKN1", "193", "EmpireEx_13", "skn1"),
    _server("RU1", "031", "EmpireEx_14", "ru1"),
    _server("RO1", "040", "EmpireEx_15", "ro1"),
)


class ServerRegistry:
    """
    Lookup of enabled game servers by name and by id suffix.

    Example
    -------
    >>> registry = ServerRegistry()
    >>> registry.get("de1").zone
    'EmpireEx_2'
    >>> registry.split_request_id(1234010)
    (1234, '010')
    """

    def __init__(self, servers: Iterable[GameServer] = DEFAULT_SERVERS) -> None:
        self._by_name: Dict[str, GameServer] = {}
        self._by_code: Dict[str, GameServer] = {}

        for server in servers:
            self._by_name[server.name] = server
            if server.disabled:
                continue
            if len(server.code) != SERVER_CODE_LENGTH:
                raise ValueError(f"Server {server.name} code must be {SERVER_CODE_LENGTH} digits")
            self._by_code[server.code] = server

    def names(self) -> List[str]:
        return [name for name, server in self._by_name.items() if not server.disabled]

    def get(self, name: str) -> GameServer:
        """
        Resolve a server name (case-insensitive).

        Raises
        ------
        InvalidInputError
            For unknown or disabled servers.
        """
        server = self._by_name.get(str(name).strip().upper())
        if server is None or server.disabled:
            raise InvalidInputError("server", f"Invalid server: {name}")
        return server

    def by_code(self, code: str) -> GameServer:
        server = self._by_code.get(code)
        if server is None:
            raise InvalidInputError("code", f"Invalid server code: {code}")
        return server

    @staticmethod
    def verify_id(value: Union[str, int]) -> int:
        """
        Validate a public id: numeric, within range, longer than a server code.

        Raises
        ------
        InvalidInputError
            If the value cannot be a public id.
        """
        text = str(value).strip()
        if not text.isdigit() or len(text) <= SERVER_CODE_LENGTH or int(text) > MAX_PUBLIC_ID:
            raise InvalidInputError("id", f"Invalid id: {value}")
        return int(text)

    def split_request_id(self, value: Union[str, int]) -> Tuple[int, str]:
        """Split a public id into its server-local id and server code."""
        text = str(self.verify_id(value))
        return int(text[:-SERVER_CODE_LENGTH]), text[-SERVER_CODE_LENGTH:]

    def server_for_request_id(self, value: Union[str, int]) -> GameServer:
        _, code = self.split_request_id(value)
        return self.by_code(code)

    @staticmethod
    def add_code(local_id: Union[int, str, None], server: GameServer) -> Union[int, None]:
        """Suffix a server-local id with the server code."""
        if local_id is None or local_id == "":
            return None
        return int(f"{local_id}{server.code}")
