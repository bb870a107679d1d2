"""aiohttp server for Pagestage.

Serves the build output directory, mapping "/about" to "about/index.html".
"""

from aiohttp import web

from pagestage.api.pages import create_pages_routes
from pagestage.app_keys import config_key, output_dir_key
from pagestage.config import Config
from pagestage.core.paths import INDEX_FILE


async def serve_page(request: web.Request) -> web.StreamResponse:
    """Serve a built file, falling back to the directory's index.html.

    With live reload enabled, HTML pages get the reload client injected.
    """
    output_dir = request.app[output_dir_key].resolve()
    path = request.match_info["path"].strip("/")

    target = (output_dir / path).resolve()
    if not target.is_relative_to(output_dir):
        raise web.HTTPNotFound()

    if target.is_dir():
        target = target / INDEX_FILE
    if not target.is_file():
        raise web.HTTPNotFound()

    if target.suffix == ".html" and request.app[config_key].live_reload.enabled:
        from pagestage.live.reload import inject_live_reload

        html = target.read_text(encoding="utf-8")
        return web.Response(text=inject_live_reload(html), content_type="text/html")

    return web.FileResponse(target)


def create_app(config: Config) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    app[config_key] = config
    app[output_dir_key] = config.pages.output_dir

    # API routes (must be registered first to take precedence over file serving)
    app.router.add_routes(create_pages_routes())

    # Live reload WebSocket endpoint
    if config.live_reload.enabled:
        from pagestage.live import LiveReloadManager
        from pagestage.live.reload import create_live_reload_routes

        manager = LiveReloadManager(
            config,
            watch_patterns=config.live_reload.watch_patterns,
        )
        app["live_reload_manager"] = manager
        app.router.add_routes(create_live_reload_routes(manager))
        app.on_startup.append(_start_live_reload)
        app.on_cleanup.append(_stop_live_reload)

    # Built pages - must be last to catch all non-API routes
    app.router.add_get("/{path:.*}", serve_page)

    return app


async def _start_live_reload(app: web.Application) -> None:
    """Start live reload on application startup."""
    from pagestage.live import LiveReloadManager

    manager: LiveReloadManager = app["live_reload_manager"]
    await manager.start()


async def _stop_live_reload(app: web.Application) -> None:
    """Stop live reload on application cleanup."""
    from pagestage.live import LiveReloadManager

    manager: LiveReloadManager = app["live_reload_manager"]
    await manager.stop()


def run_server(config: Config) -> None:
    """Run the server.

    Args:
        config: Application configuration
    """
    app = create_app(config)
    web.run_app(app, host=config.server.host, port=config.server.port)
