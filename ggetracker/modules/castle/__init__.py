from ggetracker.modules.castle.service import CastleService, map_castle

__all__ = ["CastleService", "map_castle"]
