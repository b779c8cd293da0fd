"""
GGE Tracker API.

Cache-aside JSON API over the Goodgame Empire ranking databases, the live
game proxy and a headless renderer for game assets.
"""

__version__ = "25.11.02b0"
