"""Output path and public URL derivation for page sources.

Maps a page source file to the static file it is written to and the URL it
is published under:

    pages/index.md          -> index.html           ""
    pages/about.md          -> about/index.html     "/about"
    pages/about/index.html  -> about/index.html     "/about"
    pages/blog/post.md      -> blog/post/index.html "/blog/post"
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pagestage.core.types import OutputPath, URLPath

PAGE_SUFFIXES = (".md", ".html")
INDEX_FILE = "index.html"


@dataclass(frozen=True)
class PagePaths:
    """Output location and public address of a page."""

    relative_output_path: OutputPath
    public_path: URLPath
    public_url: str


def format_relative_name(source: str | Path, pages_root: str | Path) -> OutputPath:
    """Compute the output path of a page relative to the output root.

    Args:
        source: Path to the page source file
        pages_root: Root directory of page sources

    Returns:
        Relative output path, always ending in "index.html"
    """
    relative = os.path.relpath(source, pages_root).replace(os.sep, "/")
    for suffix in PAGE_SUFFIXES:
        if relative.endswith(suffix):
            relative = relative[: -len(suffix)]
            break

    if relative in ("index", "index/index"):
        return OutputPath(INDEX_FILE)

    filename = relative.split("/")[-1]
    if filename == "index":
        return OutputPath(f"{relative}.html")
    return OutputPath(f"{relative}/{INDEX_FILE}")


def public_path_for(relative_output_path: str) -> URLPath:
    """Strip the index file and trailing slash from an output path."""
    path = ("/" + relative_output_path).removesuffix(INDEX_FILE)
    if path.endswith("/"):
        path = path[:-1]
    return URLPath(path)


def derive(source: str | Path, pages_root: str | Path, site_url: str) -> PagePaths:
    """Derive output path, public path and public URL for a page source.

    Pure and total: sources outside pages_root yield "../"-prefixed paths
    rather than an error.

    Args:
        source: Path to the page source file
        pages_root: Root directory of page sources
        site_url: Site base URL without trailing slash

    Returns:
        PagePaths for the source
    """
    relative_output_path = format_relative_name(source, pages_root)
    public_path = public_path_for(relative_output_path)
    return PagePaths(
        relative_output_path=relative_output_path,
        public_path=public_path,
        public_url=site_url + public_path,
    )
