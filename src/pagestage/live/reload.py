"""WebSocket-based live reload for development mode.

Monitors page sources and templates for changes, rebuilds the site and
notifies connected clients via WebSocket to trigger page reloads.
"""

import asyncio
import json
import logging
import weakref
from pathlib import Path

from aiohttp import WSMsgType, web
from watchfiles import Change, awatch

from pagestage.config import Config
from pagestage.core.bundler import build_site
from pagestage.core.errors import PagestageError
from pagestage.core.paths import derive

logger = logging.getLogger(__name__)

# Sent when a shared template changes and every page may be affected
ALL_PAGES = "*"

LIVE_RELOAD_PATH = "/ws/live-reload"

LIVE_RELOAD_SCRIPT = """<script>
(function () {
  var scheme = location.protocol === "https:" ? "wss://" : "ws://";
  var socket = new WebSocket(scheme + location.host + "/ws/live-reload");
  socket.onmessage = function (event) {
    var data = JSON.parse(event.data);
    var current = location.pathname.replace(/\\/$/, "") || "/";
    if (data.type === "reload" && (data.path === "*" || data.path === current)) {
      location.reload();
    }
  };
})();
</script>
"""


def inject_live_reload(html: str) -> str:
    """Insert the live reload client before </body>, or append it."""
    index = html.lower().rfind("</body>")
    if index == -1:
        return html + LIVE_RELOAD_SCRIPT
    return html[:index] + LIVE_RELOAD_SCRIPT + html[index:]


class LiveReloadManager:
    """Manages WebSocket connections and file watching for live reload.

    Coordinates between file system watcher, site rebuilds and connected
    WebSocket clients to provide automatic page refresh on source changes.
    """

    def __init__(
        self,
        config: Config,
        watch_patterns: list[str] | None = None,
    ) -> None:
        """Initialize the live reload manager.

        Args:
            config: Site configuration used for rebuilds
            watch_patterns: Glob patterns to watch (default: ["*.md", "*.html"])
        """
        self._config = config
        self._watch_patterns = watch_patterns or ["*.md", "*.html"]
        self._connections: weakref.WeakSet[web.WebSocketResponse] = weakref.WeakSet()
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def watch_dirs(self) -> list[Path]:
        """Existing directories holding page sources and templates.

        Directories nested inside another watched directory are dropped.
        """
        candidates = [self._config.pages.source_dir, *self._config.pages.resolve_dirs]
        dirs: list[Path] = []
        for candidate in candidates:
            if candidate.is_dir() and candidate not in dirs:
                dirs.append(candidate)
        return [
            directory
            for directory in dirs
            if not any(other != directory and directory.is_relative_to(other) for other in dirs)
        ]

    async def start(self) -> None:
        """Start the file watcher."""
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_files())

    async def stop(self) -> None:
        """Stop the file watcher and close all connections."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        for ws in list(self._connections):
            await ws.close()

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connection for live reload.

        Args:
            request: aiohttp request

        Returns:
            WebSocket response
        """
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._connections.add(ws)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    break
        finally:
            self._connections.discard(ws)

        return ws

    async def _watch_files(self) -> None:
        """Watch for file changes, rebuild and broadcast reload events."""
        watch_dirs = self.watch_dirs
        if not watch_dirs:
            logger.warning("Nothing to watch: pages and template directories are missing")
            return

        async for changes in awatch(*watch_dirs):
            paths = [
                Path(path_str)
                for change_type, path_str in changes
                if change_type != Change.deleted and self.matches_patterns(Path(path_str))
            ]
            if not paths:
                continue

            if not await self._rebuild():
                continue

            for path in paths:
                await self.broadcast_reload(self.to_public_path(path))

    async def _rebuild(self) -> bool:
        """Rebuild the site, reporting whether it succeeded."""
        try:
            await asyncio.to_thread(build_site, self._config)
        except (PagestageError, FileNotFoundError) as e:
            logger.error(f"Rebuild failed: {e}")
            return False
        return True

    def matches_patterns(self, path: Path) -> bool:
        """Check if a path inside a watched directory matches any watch pattern.

        Args:
            path: Path to check

        Returns:
            True if path matches any pattern
        """
        for directory in self.watch_dirs:
            try:
                relative = path.relative_to(directory)
            except ValueError:
                continue

            if any(relative.match(pattern) for pattern in self._watch_patterns):
                return True
        return False

    def to_public_path(self, file_path: Path) -> str:
        """Convert a changed file to the public path of the page it affects.

        Args:
            file_path: Absolute file path

        Returns:
            Public path (e.g., "/about"), or "*" for templates outside the pages directory
        """
        pages_root = self._config.pages.source_dir
        try:
            file_path.relative_to(pages_root)
        except ValueError:
            return ALL_PAGES

        return derive(file_path, pages_root, "").public_path or "/"

    async def broadcast_reload(self, path: str) -> None:
        """Broadcast reload event to all connected clients.

        Args:
            path: Public path that changed
        """
        if not self._connections:
            return

        message = json.dumps({"type": "reload", "path": path})

        for ws in list(self._connections):
            if ws.closed:
                continue
            try:
                await ws.send_str(message)
            except ConnectionResetError:
                # Client disconnected mid-send, will be cleaned up by WeakSet
                pass


def create_live_reload_routes(manager: LiveReloadManager) -> list[web.RouteDef]:
    """Create routes for live reload WebSocket.

    Args:
        manager: LiveReloadManager instance

    Returns:
        List of route definitions
    """
    return [web.get(LIVE_RELOAD_PATH, manager.handle_websocket)]
