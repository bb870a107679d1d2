"""Page discovery and registration.

Finds page sources under the pages root, derives where each is published,
and registers a loader rule, an extraction step and an entry for it.
"""

import logging
import os
import re
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pagestage.config import Config
from pagestage.core.bundle import BuildConfig, ExtractStep, LoaderRule, LoaderSpec
from pagestage.core.errors import OutputCollisionError
from pagestage.core.paths import derive
from pagestage.core.types import OutputPath, URLPath

logger = logging.getLogger(__name__)


class ContentKind(Enum):
    """Source format of a page."""

    TEMPLATE = "template"
    MARKDOWN = "markdown"


SUFFIXES = {
    ContentKind.TEMPLATE: ".html",
    ContentKind.MARKDOWN: ".md",
}


@dataclass(frozen=True)
class PageDescriptor:
    """Output location and address computed for one page source."""

    source_path: Path
    relative_output_path: OutputPath
    public_path: URLPath
    public_url: str
    content_kind: ContentKind


def discover_pages(pages_root: Path) -> list[tuple[Path, ContentKind]]:
    """Find all page sources under pages_root.

    Templates come first, then Markdown files, each in lexicographic order.

    Raises:
        FileNotFoundError: If pages_root doesn't exist
    """
    if not pages_root.is_dir():
        raise FileNotFoundError(f"Pages directory not found: {pages_root}")

    found: list[tuple[Path, ContentKind]] = []
    for kind in (ContentKind.TEMPLATE, ContentKind.MARKDOWN):
        sources = sorted(pages_root.rglob(f"*{SUFFIXES[kind]}"))
        found.extend((source, kind) for source in sources if source.is_file())
    return found


def describe_page(
    source: Path,
    pages_root: Path,
    site_url: str,
    kind: ContentKind | None = None,
) -> PageDescriptor:
    """Compute the PageDescriptor for a page source."""
    if kind is None:
        kind = ContentKind.MARKDOWN if source.suffix == SUFFIXES[ContentKind.MARKDOWN] else ContentKind.TEMPLATE
    paths = derive(source, pages_root, site_url)
    return PageDescriptor(
        source_path=source,
        relative_output_path=paths.relative_output_path,
        public_path=paths.public_path,
        public_url=paths.public_url,
        content_kind=kind,
    )


def check_collisions(descriptors: list[PageDescriptor]) -> None:
    """Ensure no two pages are written to the same output path.

    Raises:
        OutputCollisionError: Listing each shared output path and its sources
    """
    by_output: dict[str, list[str]] = defaultdict(list)
    for descriptor in descriptors:
        by_output[descriptor.relative_output_path].append(str(descriptor.source_path))

    collisions = {output: sources for output, sources in by_output.items() if len(sources) > 1}
    if collisions:
        raise OutputCollisionError(collisions)


def page_loaders(
    kind: ContentKind,
    render_options: dict[str, str],
    *,
    markdown_transform: str = "markdown",
    default_layout: str | None = None,
) -> tuple[LoaderSpec, ...]:
    """Build the transform pipeline for a page of the given kind."""
    render = LoaderSpec("render", render_options)
    if kind is ContentKind.MARKDOWN:
        front_matter_options = {"default_extends": default_layout} if default_layout else {}
        return (
            LoaderSpec("frontmatter-json", front_matter_options),
            LoaderSpec(markdown_transform),
            render,
        )
    return (LoaderSpec("template"), render)


def register_page(
    build: BuildConfig,
    descriptor: PageDescriptor,
    project_root: Path,
    *,
    markdown_transform: str = "markdown",
    default_layout: str | None = None,
) -> BuildConfig:
    """Register one page with the build.

    Returns:
        New BuildConfig with the page's extraction step, loader rule and entry
    """
    render_options = {
        "url": descriptor.public_url,
        "path": descriptor.public_path,
        "filename": os.path.relpath(descriptor.source_path, project_root).replace(os.sep, "/"),
    }
    step = ExtractStep(
        source=descriptor.source_path,
        filename=descriptor.relative_output_path,
        options=render_options,
    )
    rule = LoaderRule(
        test=re.compile(f"^{re.escape(str(descriptor.source_path))}$"),
        loaders=page_loaders(
            descriptor.content_kind,
            render_options,
            markdown_transform=markdown_transform,
            default_layout=default_layout,
        ),
    )
    logger.debug(f"Registered {descriptor.source_path} -> {descriptor.relative_output_path}")
    return build.with_plugin(step).with_loader(rule).with_entry(descriptor.source_path)


def describe_pages(config: Config) -> list[PageDescriptor]:
    """Discover and describe all pages of a site, rejecting output collisions."""
    pages_root = config.pages.source_dir
    descriptors = [
        describe_page(source, pages_root, config.site.url, kind)
        for source, kind in discover_pages(pages_root)
    ]
    check_collisions(descriptors)
    return descriptors


def register_pages(build: BuildConfig, config: Config) -> tuple[BuildConfig, list[PageDescriptor]]:
    """Register every page of a site with the build.

    Generic loader rules for page extensions are dropped first so each page
    is handled only by its own rule.

    Raises:
        FileNotFoundError: If the pages directory doesn't exist
        OutputCollisionError: If two pages share an output path
    """
    page_extensions = {suffix.lstrip(".") for suffix in SUFFIXES.values()}
    build = build.filter_loaders(lambda rule: not page_extensions & set(rule.extensions))

    descriptors = describe_pages(config)
    for descriptor in descriptors:
        build = register_page(
            build,
            descriptor,
            config.pages.project_root,
            markdown_transform=config.pages.markdown_transform,
            default_layout=config.pages.default_layout,
        )

    logger.info(f"Registered {len(descriptors)} pages from {config.pages.source_dir}")
    return build, descriptors
