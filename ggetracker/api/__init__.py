"""
FastAPI surface of the GGE Tracker API.
"""

from ggetracker.api.app import create_app

__all__ = ["create_app"]
