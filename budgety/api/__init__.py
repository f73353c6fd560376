"""HTTP API."""

from budgety.api.app import create_app
from budgety.api.dependencies import ServiceContainer

__all__ = ["ServiceContainer", "create_app"]
