"""HTTP API."""

from lendbot.api.app import create_app

__all__ = ["create_app"]
