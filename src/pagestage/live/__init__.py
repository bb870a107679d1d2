"""Live reload for the development server."""

from pagestage.live.reload import LiveReloadManager

__all__ = ["LiveReloadManager"]
