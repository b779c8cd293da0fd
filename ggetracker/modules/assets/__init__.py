from ggetracker.modules.assets.service import AssetService, normalize_asset_name

__all__ = ["AssetService", "normalize_asset_name"]
