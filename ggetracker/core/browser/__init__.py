"""
Headless browser lifecycle management.
"""

from ggetracker.core.browser.manager import BrowserManager

__all__ = ["BrowserManager"]
