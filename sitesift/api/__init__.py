"""HTTP API for SiteSift."""

from .server import app

__all__ = ["app"]
