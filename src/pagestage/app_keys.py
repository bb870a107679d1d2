"""Application keys for type-safe app configuration access."""

from pathlib import Path

from aiohttp import web

from pagestage.config import Config

config_key = web.AppKey("config", Config)
output_dir_key = web.AppKey("output_dir", Path)
