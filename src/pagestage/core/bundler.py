"""Build execution.

Runs each entry of a BuildConfig through its loader pipeline and writes the
result to the file named by its extraction step.
"""

import logging
import os
import textwrap
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from markupsafe import Markup

from pagestage.config import Config
from pagestage.core.bundle import BuildConfig, ExtractStep, LoaderRule, base_build_config
from pagestage.core.cache import BuildCache, compute_fingerprint
from pagestage.core.errors import BuildError, PagestageError
from pagestage.core.markdown import render_markdown
from pagestage.core.pages import PageDescriptor, register_pages
from pagestage.core.transforms import LoaderContext, get_transform

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    """Outcome of a build run."""

    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def markdown_filter(text: str) -> Markup:
    """Render an indented Markdown block to HTML."""
    return Markup(render_markdown(textwrap.dedent(text)))


def create_environment(search_paths: Iterable[Path], public_path: str = "/") -> Environment:
    """Create the Jinja2 environment pages are rendered with.

    Args:
        search_paths: Directories searched for parent templates
        public_path: Public asset path exposed as the "public_path" global

    Returns:
        Configured Environment
    """
    environment = Environment(
        loader=FileSystemLoader([str(path) for path in search_paths]),
        autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=True),
    )
    environment.filters["markdown"] = markdown_filter
    environment.globals["public_path"] = public_path
    return environment


class Bundler:
    """Executes a BuildConfig.

    Entries are processed in order. Any failure aborts the run; there is no
    partial success.
    """

    def __init__(
        self,
        build: BuildConfig,
        output_dir: Path,
        *,
        cache: BuildCache | None = None,
        project_root: Path | None = None,
    ) -> None:
        """Initialize bundler.

        Args:
            build: Build configuration to execute
            output_dir: Root directory extracted files are written to
            cache: Optional BuildCache for incremental builds
            project_root: Directory cache keys are relative to (default: cwd)
        """
        self._build = build
        self._output_dir = output_dir
        self._cache = cache
        self._project_root = project_root or Path.cwd()
        self._environment = create_environment(build.resolve, build.public_path)

    @property
    def environment(self) -> Environment:
        """Jinja2 environment used by the render transform."""
        return self._environment

    def run(self) -> BuildReport:
        """Build every entry.

        Returns:
            BuildReport listing written and up-to-date output files

        Raises:
            BuildError: If any entry fails to build
        """
        report = BuildReport()
        for source in self._build.entry:
            step = self._build.extract_step_for(source)
            if step is None:
                logger.debug(f"No extraction step for {source}, skipping")
                continue

            if self.build_entry(source, step):
                report.written.append(step.filename)
            else:
                report.skipped.append(step.filename)

        logger.info(f"Wrote {len(report.written)} pages, {len(report.skipped)} up to date")
        return report

    def build_entry(self, source: Path, step: ExtractStep) -> bool:
        """Build one entry and write its output file.

        Returns:
            True if the file was written, False if the cached output is current

        Raises:
            BuildError: If no rule matches or a transform fails
        """
        rule = self._build.rule_for(source)
        if rule is None:
            raise BuildError(f"No loader rule matches {source}")

        try:
            source_mtime = source.stat().st_mtime
        except OSError as e:
            raise BuildError(f"Cannot read {source}: {e}") from e

        output_path = self._output_dir / step.filename
        key = self._cache_key(source)
        fingerprint = compute_fingerprint([(spec.name, spec.options) for spec in rule.loaders])

        if self._cache is not None and output_path.exists():
            entry = self._cache.get(key)
            if entry is not None and entry.is_fresh(source_mtime, fingerprint):
                logger.debug(f"{step.filename} is up to date")
                return False

        html, context = self._run_loaders(source, rule)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding="utf-8")
        logger.info(f"Wrote {step.filename}")

        if self._cache is not None:
            self._cache.set(key, source_mtime, fingerprint, self._dependency_mtimes(context.dependencies))

        return True

    def _run_loaders(self, source: Path, rule: LoaderRule) -> tuple[str, LoaderContext]:
        """Run the rule's loaders over the source text, left to right."""
        text = source.read_text(encoding="utf-8")
        context = LoaderContext(resource_path=source, environment=self._environment)

        for spec in rule.loaders:
            transform = get_transform(spec.name)
            context.options = spec.options
            try:
                text = transform(text, context)
            except (PagestageError, TemplateError) as e:
                raise BuildError(f"{source}: {spec.name} failed: {e}") from e

        return text, context

    def _dependency_mtimes(self, names: list[str]) -> dict[str, float]:
        """Resolve dependency template names and record their mtimes."""
        mtimes: dict[str, float] = {}
        for name in names:
            for directory in self._build.resolve:
                candidate = directory / name
                if candidate.is_file():
                    mtimes[str(candidate)] = candidate.stat().st_mtime
                    break
            else:
                logger.debug(f"Dependency {name} not found in template search path")
        return mtimes

    def _cache_key(self, source: Path) -> str:
        return os.path.relpath(source, self._project_root).replace(os.sep, "/")


@dataclass
class SiteBuild:
    """Result of building a whole site."""

    report: BuildReport
    pages: list[PageDescriptor]


def build_site(config: Config) -> SiteBuild:
    """Register all pages of a site and build them.

    Raises:
        FileNotFoundError: If the pages directory doesn't exist
        OutputCollisionError: If two pages share an output path
        BuildError: If any page fails to build
    """
    build, descriptors = register_pages(base_build_config(config), config)
    cache = BuildCache(config.pages.cache_dir) if config.pages.cache_enabled else None
    bundler = Bundler(
        build,
        config.pages.output_dir,
        cache=cache,
        project_root=config.pages.project_root,
    )
    return SiteBuild(report=bundler.run(), pages=descriptors)
