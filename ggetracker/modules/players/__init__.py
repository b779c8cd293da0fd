from ggetracker.modules.players.service import PlayerService

__all__ = ["PlayerService"]
