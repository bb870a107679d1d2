"""Configuration management for Pagestage.

Supports TOML configuration format with auto-discovery. SITE_URL and
CDN_URL environment variables override the [site] section.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "pagestage.toml"

DEFAULT_SITE_URL = "http://www.mazurka.io"
DEFAULT_CDN_URL = "/"
MARKDOWN_TRANSFORMS = ("markdown", "frontmatter")


@dataclass
class SiteConfig:
    """Public site addresses."""

    url: str = DEFAULT_SITE_URL
    cdn_url: str = DEFAULT_CDN_URL


@dataclass
class PagesConfig:
    """Page sources and build output configuration."""

    source_dir: Path = field(default_factory=lambda: Path("src/pages"))
    resolve_dirs: list[Path] = field(default_factory=lambda: [Path("src")])
    output_dir: Path = field(default_factory=lambda: Path("build"))
    cache_dir: Path = field(default_factory=lambda: Path(".cache"))
    cache_enabled: bool = True
    markdown_transform: str = "markdown"
    default_layout: str | None = None
    project_root: Path = field(default_factory=lambda: Path("."))


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class LiveReloadConfig:
    """Live reload configuration."""

    enabled: bool = True
    watch_patterns: list[str] | None = None


@dataclass
class Config:
    """Application configuration."""

    site: SiteConfig
    pages: PagesConfig
    server: ServerConfig
    live_reload: LiveReloadConfig
    config_path: Path | None = None

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Config:
        """Load configuration from file and environment.

        If config_path is provided, loads from that file.
        Otherwise, searches for pagestage.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file
            environ: Environment to read SITE_URL and CDN_URL from (default: os.environ)

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            config = cls._load_from_file(config_path)
        else:
            discovered_path = cls._discover_config()
            if discovered_path is None:
                config = cls._default()
            else:
                config = cls._load_from_file(discovered_path)

        return config._apply_environment(os.environ if environ is None else environ)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents.

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _default(cls) -> Config:
        """Create config with all defaults."""
        return cls(
            site=SiteConfig(),
            pages=PagesConfig(),
            server=ServerConfig(),
            live_reload=LiveReloadConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> Config:
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            data = tomllib.load(f)

        if not isinstance(data, dict):
            raise ValueError("Configuration must be a dictionary")

        config_dir = path.parent

        return cls(
            site=cls._parse_site(data.get("site")),
            pages=cls._parse_pages(data.get("pages"), config_dir),
            server=cls._parse_server(data.get("server")),
            live_reload=cls._parse_live_reload(data.get("live_reload")),
            config_path=path,
        )

    @classmethod
    def _parse_site(cls, data: object) -> SiteConfig:
        if data is None:
            return SiteConfig()

        if not isinstance(data, dict):
            raise ValueError("site section must be a dictionary")

        url = data.get("url", DEFAULT_SITE_URL)
        if not isinstance(url, str):
            raise ValueError("site.url must be a string")

        cdn_url = data.get("cdn_url", DEFAULT_CDN_URL)
        if not isinstance(cdn_url, str):
            raise ValueError("site.cdn_url must be a string")

        return SiteConfig(url=url.rstrip("/"), cdn_url=cdn_url)

    @classmethod
    def _parse_pages(cls, data: object, config_dir: Path) -> PagesConfig:
        """Parse pages configuration section.

        Args:
            data: Raw pages section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            PagesConfig instance
        """
        if data is None:
            return PagesConfig(
                source_dir=config_dir / "src" / "pages",
                resolve_dirs=[config_dir / "src"],
                output_dir=config_dir / "build",
                cache_dir=config_dir / ".cache",
                project_root=config_dir,
            )

        if not isinstance(data, dict):
            raise ValueError("pages section must be a dictionary")

        source_dir = cls._parse_dir(data, "source_dir", "src/pages", config_dir)
        output_dir = cls._parse_dir(data, "output_dir", "build", config_dir)
        cache_dir = cls._parse_dir(data, "cache_dir", ".cache", config_dir)

        resolve_raw = data.get("resolve_dirs", ["src"])
        if not isinstance(resolve_raw, list):
            raise ValueError("pages.resolve_dirs must be a list")
        resolve_dirs: list[Path] = []
        for item in resolve_raw:
            if not isinstance(item, str):
                raise ValueError("pages.resolve_dirs items must be strings")
            resolve_dirs.append(config_dir / item)

        cache_enabled = data.get("cache", True)
        if not isinstance(cache_enabled, bool):
            raise ValueError("pages.cache must be a boolean")

        markdown_transform = data.get("markdown_transform", "markdown")
        if markdown_transform not in MARKDOWN_TRANSFORMS:
            raise ValueError(
                f"pages.markdown_transform must be one of {', '.join(MARKDOWN_TRANSFORMS)}",
            )

        default_layout = data.get("default_layout")
        if default_layout is not None and not isinstance(default_layout, str):
            raise ValueError("pages.default_layout must be a string")

        return PagesConfig(
            source_dir=source_dir,
            resolve_dirs=resolve_dirs,
            output_dir=output_dir,
            cache_dir=cache_dir,
            cache_enabled=cache_enabled,
            markdown_transform=markdown_transform,
            default_layout=default_layout,
            project_root=config_dir,
        )

    @staticmethod
    def _parse_dir(data: dict, key: str, default: str, config_dir: Path) -> Path:
        value = data.get(key, default)
        if not isinstance(value, str):
            raise ValueError(f"pages.{key} must be a string")
        return config_dir / value

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not isinstance(port, int):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_live_reload(cls, data: object) -> LiveReloadConfig:
        if data is None:
            return LiveReloadConfig()

        if not isinstance(data, dict):
            raise ValueError("live_reload section must be a dictionary")

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError("live_reload.enabled must be a boolean")

        watch_patterns_raw = data.get("watch_patterns")
        watch_patterns: list[str] | None = None
        if watch_patterns_raw is not None:
            if not isinstance(watch_patterns_raw, list):
                raise ValueError("live_reload.watch_patterns must be a list")
            watch_patterns = []
            for item in watch_patterns_raw:
                if not isinstance(item, str):
                    raise ValueError("live_reload.watch_patterns items must be strings")
                watch_patterns.append(item)

        return LiveReloadConfig(enabled=enabled, watch_patterns=watch_patterns)

    def _apply_environment(self, environ: Mapping[str, str]) -> Config:
        """Apply SITE_URL and CDN_URL from the environment."""
        return self.with_overrides(
            site_url=environ.get("SITE_URL") or None,
            cdn_url=environ.get("CDN_URL") or None,
        )

    def with_overrides(
        self,
        *,
        site_url: str | None = None,
        cdn_url: str | None = None,
        output_dir: Path | None = None,
        cache_enabled: bool | None = None,
        host: str | None = None,
        port: int | None = None,
        live_reload_enabled: bool | None = None,
    ) -> Config:
        """Create a new Config with overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Returns:
            New Config instance with overrides applied
        """
        site = self.site
        if site_url is not None or cdn_url is not None:
            site = replace(
                self.site,
                url=site_url.rstrip("/") if site_url is not None else self.site.url,
                cdn_url=cdn_url if cdn_url is not None else self.site.cdn_url,
            )

        pages = self.pages
        if output_dir is not None:
            pages = replace(pages, output_dir=output_dir)
        if cache_enabled is not None:
            pages = replace(pages, cache_enabled=cache_enabled)

        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        live_reload = self.live_reload
        if live_reload_enabled is not None:
            live_reload = replace(self.live_reload, enabled=live_reload_enabled)

        return replace(
            self,
            site=site,
            pages=pages,
            server=server,
            live_reload=live_reload,
        )
