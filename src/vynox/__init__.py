"""Admin API for a VPN server directory with a versioned Redis cache."""

__version__ = "1.0.0"
