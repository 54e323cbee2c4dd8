# tripwire_ui/__init__.py
from .main import create_app, serve_in_background
from .sse import NotificationHub

__all__ = ["create_app", "serve_in_background", "NotificationHub"]
