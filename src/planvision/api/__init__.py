# API module
# REST interface for plan analysis

from .server import create_app

__all__ = ["create_app"]
