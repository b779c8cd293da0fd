from ggetracker.modules.shared.base_service import BaseService

__all__ = ["BaseService"]
