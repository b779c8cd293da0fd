"""
Application lifecycle orchestration for the GGE Tracker API.
"""

from ggetracker.core.infra.application_context import ApplicationContext

__all__ = ["ApplicationContext"]
