"""
GGE Tracker Infrastructure Constants

Purpose
-------
Provide infrastructure-level constants for the cache-aside layer, the
admission queues, the upstream clients and the HTTP surface. These are
technical limits, TTLs and wire formats, not game mechanics.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by functional area for easy scanning and maintenance
- Environment-tunable values live in Config; these never change at runtime
"""

from __future__ import annotations

from typing import Final, Tuple

# ============================================================================
# CACHE
# ============================================================================

# Fill versions live under "fill-version:<namespace>"
FILL_VERSION_KEY_PREFIX: Final[str] = "fill-version"
DEFAULT_FILL_VERSION: Final[int] = 1

DEFAULT_CACHE_TTL_SECONDS: Final[int] = 1_200  # 20 minutes
CASTLE_CACHE_TTL_SECONDS: Final[int] = 60  # live game data
ASSET_IMAGE_CACHE_TTL_SECONDS: Final[int] = 60 * 60 * 24  # rendered images
STATIC_CACHE_TTL_SECONDS: Final[int] = 60 * 60 * 24 * 7  # near-static data

CASTLE_CACHE_NAMESPACE: Final[str] = "castle"
ASSETS_CACHE_NAMESPACE: Final[str] = "assets"

# ============================================================================
# ADMISSION QUEUES
# ============================================================================

CASTLE_QUEUE_NAME: Final[str] = "castle"
RENDER_QUEUE_NAME: Final[str] = "render"

# ============================================================================
# PAGINATION & IDS
# ============================================================================

PAGINATION_LIMIT: Final[int] = 15
MAX_RESULT_PAGE: Final[int] = 999_999_999

# Public ids carry the 3-digit server code as their last three digits
SERVER_CODE_LENGTH: Final[int] = 3
MAX_PUBLIC_ID: Final[int] = 99_999_999_999

PLAYER_ORDER_BY_VALUES: Final[Tuple[str, ...]] = (
    "player_name",
    "loot_current",
    "loot_all_time",
    "might_current",
    "might_all_time",
    "honor",
    "level",
    "highest_fame",
    "current_fame",
    "remaining_relocation_time",
)
DEFAULT_PLAYER_ORDER_BY: Final[str] = "player_name"

# ============================================================================
# ASSETS & RENDERING
# ============================================================================

ASSET_NAME_PATTERN: Final[str] = r"^[0-9a-z_-]{1,100}$"
ASSET_IMAGE_HTTP_MAX_AGE: Final[int] = 60 * 60 * 24 * 30  # 30 days

CREATEJS_SCRIPTS: Final[Tuple[str, ...]] = (
    "https://code.createjs.com/1.0.0/createjs.min.js",
    "https://code.createjs.com/1.0.0/easeljs.min.js",
    "https://code.createjs.com/1.0.0/tweenjs.min.js",
)

CHROMIUM_ARGS: Final[Tuple[str, ...]] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-software-rasterizer",
    "--disable-accelerated-2d-canvas",
    "--disable-background-timer-throttling",
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-sync",
    "--metrics-recording-only",
    "--mute-audio",
    "--no-first-run",
    "--no-zygote",
    "--ignore-certificate-errors",
    "--window-size=800,600",
)

# ============================================================================
# UPSTREAM
# ============================================================================

# Hosts whose URLs are fetched through the CDN proxy
CDN_REWRITE_PREFIXES: Final[Tuple[str, ...]] = (
    "https://empire-html5.goodgamestudios.com/default/",
    "https://cdn.discordapp.com/",
)

# ============================================================================
# HTTP SURFACE
# ============================================================================

API_PREFIX: Final[str] = "/api/v1"
GENERIC_INTERNAL_ERROR_MESSAGE: Final[str] = (
    "Internal Server Error. Please try again later."
)
