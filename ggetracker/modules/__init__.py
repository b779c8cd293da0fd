"""
Domain services: servers, players, castle analysis and asset rendering.
"""
