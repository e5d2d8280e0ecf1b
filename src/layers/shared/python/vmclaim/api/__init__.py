"""HTTP surface: health and status endpoints."""

from vmclaim.api.app import create_app

__all__ = ["create_app"]
