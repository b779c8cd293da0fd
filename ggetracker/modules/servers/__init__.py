from ggetracker.modules.servers.registry import DEFAULT_SERVERS, GameServer, ServerRegistry

__all__ = ["DEFAULT_SERVERS", "GameServer", "ServerRegistry"]
