"""
Integration Tests for DatabaseService and the player listing
============================================================

Purpose
-------
Run the per-server engine, the session context manager and the player page
query against a real PostgreSQL (testcontainers).

Testing Strategy
----------------
- One PostgreSQL container per session
- A one-server registry whose database is the container's database
- The schema holds just the columns the listing reads
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import text

from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.database.service import DatabaseService
from ggetracker.modules.players.service import PlayerService
from ggetracker.modules.servers.registry import GameServer, ServerRegistry

SCHEMA = [
    "DROP TABLE IF EXISTS players",
    "DROP TABLE IF EXISTS alliances",
    "CREATE TABLE alliances (id INTEGER PRIMARY KEY, name TEXT)",
    """
    CREATE TABLE players (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        alliance_id INTEGER REFERENCES alliances(id),
        alliance_rank INTEGER,
        might_current BIGINT,
        might_all_time BIGINT,
        loot_current BIGINT,
        loot_all_time BIGINT,
        honor INTEGER,
        max_honor INTEGER,
        highest_fame INTEGER,
        current_fame INTEGER,
        remaining_relocation_time INTEGER,
        peace_disabled_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ,
        level INTEGER,
        legendary_level INTEGER
    )
    """,
]


@pytest.fixture
def game_server(postgres_container):
    return GameServer(
        name="DE1",
        code="010",
        zone="EmpireEx_2",
        sql_database=postgres_container.dbname,
        olap_database=postgres_container.dbname,
    )


@pytest.fixture
async def database(postgres_container):
    url = postgres_container.get_connection_url()
    template = url.rsplit("/", 1)[0] + "/{database}"
    service = DatabaseService(url_template=template)
    yield service
    await service.shutdown()


@pytest.fixture
async def seeded(database, game_server):
    async with database.session(game_server) as session:
        for statement in SCHEMA:
            await session.execute(text(statement))
        await session.execute(text("INSERT INTO alliances (id, name) VALUES (7, 'Knights')"))
        for index in range(1, 21):
            await session.execute(
                text(
                    "INSERT INTO players (id, name, alliance_id, might_current, updated_at) "
                    "VALUES (:id, :name, :alliance, :might, :updated)"
                ),
                {
                    "id": index,
                    "name": f"player{index:02d}",
                    "alliance": 7 if index % 2 else None,
                    "might": index * 100,
                    "updated": datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
                },
            )
        await session.commit()
    return game_server


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseService:
    async def test_health_check(self, database, game_server):
        assert await database.health_check(game_server) is True
        assert database.get_status() == {"engines": ["DE1"]}

    async def test_engine_is_reused(self, database, game_server):
        first = await database.engine(game_server)
        second = await database.engine(game_server)
        assert first is second

    async def test_unreachable_database_is_unhealthy(self, game_server):
        service = DatabaseService(url_template="postgresql+asyncpg://u:p@127.0.0.1:1/{database}")
        try:
            assert await service.health_check(game_server) is False
        finally:
            await service.shutdown()


@pytest.mark.integration
@pytest.mark.database
class TestPlayerListing:
    async def test_pages_and_formats_players(self, database, seeded, store):
        accessor = CacheAccessor(store, VersionRegistry(store))
        service = PlayerService(accessor, database, ServerRegistry([seeded]))

        page_two = await service.list_players("DE1", page=2, order_by="might_current", order_type="DESC")

        assert page_two["pagination"] == {
            "current_page": 2,
            "total_pages": 2,
            "current_items_count": 5,
            "total_items_count": 20,
        }
        first = page_two["players"][0]
        assert first["player_id"] == 5010
        assert first["alliance_id"] == 7010
        assert first["alliance_name"] == "Knights"
        assert first["updated_at"] == "2025-06-01 12:00"
        assert [p["might_current"] for p in page_two["players"]] == [500, 400, 300, 200, 100]
