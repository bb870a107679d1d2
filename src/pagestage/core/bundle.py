"""Immutable build configuration.

A BuildConfig lists template search paths, loader rules, entry sources,
extraction steps and the public asset path. Every update returns a new
BuildConfig; the value passed in is never modified.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pagestage.config import Config


def _freeze(options: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(options or {}))


@dataclass(frozen=True)
class LoaderSpec:
    """A named transform plus its options."""

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", _freeze(self.options))


@dataclass(frozen=True)
class LoaderRule:
    """Binds source paths matching a pattern to a transform pipeline.

    Loaders run left to right, each receiving the previous one's output.
    """

    test: re.Pattern[str]
    loaders: tuple[LoaderSpec, ...]
    extensions: tuple[str, ...] = ()

    def matches(self, path: Path) -> bool:
        return self.test.search(str(path)) is not None


@dataclass(frozen=True)
class ExtractStep:
    """Writes the pipeline output of one source to a separate file."""

    source: Path
    filename: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", _freeze(self.options))


@dataclass(frozen=True)
class BuildConfig:
    """Build configuration consumed by the Bundler."""

    resolve: tuple[Path, ...] = ()
    loaders: tuple[LoaderRule, ...] = ()
    entry: tuple[Path, ...] = ()
    plugins: tuple[ExtractStep, ...] = ()
    public_path: str = "/"

    def with_resolve(self, *paths: Path) -> BuildConfig:
        return replace(self, resolve=(*self.resolve, *paths))

    def with_loader(self, rule: LoaderRule) -> BuildConfig:
        return replace(self, loaders=(*self.loaders, rule))

    def filter_loaders(self, keep: Callable[[LoaderRule], bool]) -> BuildConfig:
        return replace(self, loaders=tuple(rule for rule in self.loaders if keep(rule)))

    def with_entry(self, source: Path) -> BuildConfig:
        return replace(self, entry=(*self.entry, source))

    def with_plugin(self, step: ExtractStep) -> BuildConfig:
        return replace(self, plugins=(*self.plugins, step))

    def with_public_path(self, public_path: str) -> BuildConfig:
        return replace(self, public_path=public_path)

    def rule_for(self, path: Path) -> LoaderRule | None:
        """Return the last loader rule matching path, if any."""
        for rule in reversed(self.loaders):
            if rule.matches(path):
                return rule
        return None

    def extract_step_for(self, source: Path) -> ExtractStep | None:
        """Return the extraction step registered for source, if any."""
        for step in reversed(self.plugins):
            if step.source == source:
                return step
        return None


def base_build_config(config: Config) -> BuildConfig:
    """Create the starting build configuration for a site.

    Holds the template search paths, a generic rule rendering any HTML
    template, and the public asset path.
    """
    generic_templates = LoaderRule(
        test=re.compile(r"\.html$"),
        loaders=(LoaderSpec("render"),),
        extensions=("html",),
    )
    return (
        BuildConfig()
        .with_resolve(*config.pages.resolve_dirs)
        .with_loader(generic_templates)
        .with_public_path(config.site.cdn_url)
    )
