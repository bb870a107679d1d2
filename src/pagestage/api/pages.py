"""Pages API endpoint.

Lists registered pages with their output paths and public URLs.
"""

from aiohttp import web

from pagestage.app_keys import config_key
from pagestage.core.errors import OutputCollisionError
from pagestage.core.pages import describe_pages


def create_pages_routes() -> list[web.RouteDef]:
    return [
        web.get("/api/pages", get_pages),
    ]


async def get_pages(request: web.Request) -> web.Response:
    config = request.app[config_key]

    try:
        descriptors = describe_pages(config)
    except FileNotFoundError:
        return web.json_response(
            {"error": "Pages directory not found", "path": str(config.pages.source_dir)},
            status=404,
        )
    except OutputCollisionError as e:
        return web.json_response(
            {"error": "Output path collision", "collisions": e.collisions},
            status=409,
        )

    return web.json_response(
        {
            "pages": [
                {
                    "source": str(d.source_path.relative_to(config.pages.source_dir)),
                    "output": d.relative_output_path,
                    "path": d.public_path,
                    "url": d.public_url,
                    "kind": d.content_kind.value,
                }
                for d in descriptors
            ],
        },
    )
