from .leveling_api import app

__all__ = ["app"]
