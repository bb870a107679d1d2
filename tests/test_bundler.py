"""Tests for build execution."""

import os
import re
from pathlib import Path

import pytest
from pagestage.config import Config
from pagestage.core.bundle import BuildConfig, ExtractStep, LoaderRule, LoaderSpec
from pagestage.core.bundler import Bundler, build_site, create_environment
from pagestage.core.cache import BuildCache
from pagestage.core.errors import BuildError, OutputCollisionError

ABOUT_MD = """---
extends: layout.html
locals:
  title: About us
---
# About

Some *text*.
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def _touch_later(path: Path) -> None:
    """Bump mtime so the change is visible regardless of filesystem resolution."""
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))


class TestBuildSite:
    """Tests for build_site()."""

    def test__markdown_page__written_with_metadata(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)

        result = build_site(test_config)

        output = test_config.pages.output_dir / "about" / "index.html"
        html = output.read_text()
        assert "<title>About us</title>" in html
        assert '<link rel="canonical" href="http://example.com/about">' in html
        assert 'data-path="/about"' in html
        assert 'data-source="src/pages/about.md"' in html
        assert "<h1>About</h1>" in html
        assert "<em>text</em>" in html
        assert result.report.written == ["about/index.html"]

    def test__root_index__written_to_output_root(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "index.md", "---\nextends: layout.html\n---\nHome")

        build_site(test_config)

        html = (test_config.pages.output_dir / "index.html").read_text()
        assert '<link rel="canonical" href="http://example.com">' in html
        assert 'data-path=""' in html

    def test__template_page__rendered(self, test_config: Config, pages_dir: Path) -> None:
        _write(
            pages_dir / "contact" / "index.html",
            "---\nlocals:\n  title: Contact\n---\n"
            "{% extends 'layout.html' %}{% block main %}<a href=\"{{ url }}\">here</a>{% endblock %}",
        )

        build_site(test_config)

        html = (test_config.pages.output_dir / "contact" / "index.html").read_text()
        assert "<title>Contact</title>" in html
        assert '<a href="http://example.com/contact">here</a>' in html

    def test__frontmatter_transform__renders_markdown_in_engine(
        self,
        test_config: Config,
        pages_dir: Path,
    ) -> None:
        test_config.pages.markdown_transform = "frontmatter"
        _write(pages_dir / "about.md", ABOUT_MD)

        build_site(test_config)

        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert "<h1>About</h1>" in html
        assert "<title>About us</title>" in html

    def test__default_layout__used_without_extends(self, test_config: Config, pages_dir: Path) -> None:
        test_config.pages.default_layout = "layout.html"
        _write(pages_dir / "plain.md", "Just text")

        build_site(test_config)

        html = (test_config.pages.output_dir / "plain" / "index.html").read_text()
        assert "<p>Just text</p>" in html

    def test__public_path__available_to_templates(self, test_config: Config, pages_dir: Path) -> None:
        test_config.site.cdn_url = "https://cdn.example.com/"
        _write(pages_dir / "assets.html", '<script src="{{ public_path }}main.js"></script>')

        build_site(test_config)

        html = (test_config.pages.output_dir / "assets" / "index.html").read_text()
        assert html == '<script src="https://cdn.example.com/main.js"></script>'

    def test__missing_extends__raises_build_error(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "broken.md", "No front matter")

        with pytest.raises(BuildError, match="broken.md"):
            build_site(test_config)

    def test__missing_parent_template__raises_build_error(
        self,
        test_config: Config,
        pages_dir: Path,
    ) -> None:
        _write(pages_dir / "page.md", "---\nextends: nope.html\n---\nx")

        with pytest.raises(BuildError, match="nope.html"):
            build_site(test_config)

    def test__invalid_locals__raises_build_error(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "page.md", "---\nextends: layout.html\nlocals:\n  bad-name: 1\n---\nx")

        with pytest.raises(BuildError, match="Invalid local name"):
            build_site(test_config)

    def test__collision__raises_before_writing(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)
        _write(pages_dir / "about.html", "x")

        with pytest.raises(OutputCollisionError):
            build_site(test_config)

        assert not test_config.pages.output_dir.exists()


class TestIncrementalBuild:
    """Tests for cache-backed incremental builds."""

    def test__unchanged__skipped_on_second_build(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)

        first = build_site(test_config)
        second = build_site(test_config)

        assert first.report.written == ["about/index.html"]
        assert second.report.written == []
        assert second.report.skipped == ["about/index.html"]

    def test__source_change__rebuilds(self, test_config: Config, pages_dir: Path) -> None:
        source = _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        source.write_text(ABOUT_MD.replace("Some", "Other"))
        _touch_later(source)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert "Other" in html

    def test__layout_change__rebuilds_dependent_markdown(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        layout = project_dir / "src" / "layout.html"
        layout.write_text("<h2>{{ title }}</h2>{% block main %}{% endblock %}")
        _touch_later(layout)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert html.startswith("<h2>About us</h2>")

    def test__layout_change__rebuilds_dependent_template_page(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        _write(
            pages_dir / "about.html",
            "{% extends 'layout.html' %}{% block main %}About{% endblock %}",
        )
        build_site(test_config)

        layout = project_dir / "src" / "layout.html"
        layout.write_text("<h2>new</h2>{% block main %}{% endblock %}")
        _touch_later(layout)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert html == "<h2>new</h2>About"

    def test__layout_change__rebuilds_frontmatter_page(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        test_config.pages.markdown_transform = "frontmatter"
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        layout = project_dir / "src" / "layout.html"
        layout.write_text("<h2>{{ title }}</h2>{% block main %}{% endblock %}")
        _touch_later(layout)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert html.startswith("<h2>About us</h2>")

    def test__grandparent_change__rebuilds(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        base = _write(project_dir / "src" / "base.html", "<body>{% block body %}{% endblock %}</body>")
        _write(
            project_dir / "src" / "layout.html",
            "{% extends 'base.html' %}{% block body %}{% block main %}{% endblock %}{% endblock %}",
        )
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        base.write_text("<main>{% block body %}{% endblock %}</main>")
        _touch_later(base)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        html = (test_config.pages.output_dir / "about" / "index.html").read_text()
        assert html.startswith("<main>")

    def test__included_template_change__rebuilds(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        nav = _write(project_dir / "src" / "nav.html", "<nav>old</nav>")
        _write(pages_dir / "contact.html", "{% include 'nav.html' %}Contact")
        build_site(test_config)

        nav.write_text("<nav>new</nav>")
        _touch_later(nav)
        result = build_site(test_config)

        assert result.report.written == ["contact/index.html"]
        html = (test_config.pages.output_dir / "contact" / "index.html").read_text()
        assert html == "<nav>new</nav>Contact"

    def test__unrelated_template_change__skips(
        self,
        test_config: Config,
        project_dir: Path,
        pages_dir: Path,
    ) -> None:
        other = _write(project_dir / "src" / "other.html", "x")
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        _touch_later(other)
        result = build_site(test_config)

        assert result.report.skipped == ["about/index.html"]

    def test__site_url_change__rebuilds(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        result = build_site(test_config.with_overrides(site_url="https://new.example.com"))

        assert result.report.written == ["about/index.html"]

    def test__deleted_output__rebuilds(self, test_config: Config, pages_dir: Path) -> None:
        _write(pages_dir / "about.md", ABOUT_MD)
        build_site(test_config)

        (test_config.pages.output_dir / "about" / "index.html").unlink()
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]

    def test__cache_disabled__always_writes(self, test_config: Config, pages_dir: Path) -> None:
        test_config.pages.cache_enabled = False
        _write(pages_dir / "about.md", ABOUT_MD)

        build_site(test_config)
        result = build_site(test_config)

        assert result.report.written == ["about/index.html"]
        assert not test_config.pages.cache_dir.exists()


class TestBundler:
    """Tests for Bundler with hand-built configurations."""

    def test__entry_without_rule__raises_build_error(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "page.md", "x")
        build = (
            BuildConfig()
            .with_entry(source)
            .with_plugin(ExtractStep(source=source, filename="page.html"))
        )

        with pytest.raises(BuildError, match="No loader rule"):
            Bundler(build, tmp_path / "out").run()

    def test__entry_without_extract_step__skipped(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "script.js", "x")
        build = BuildConfig().with_entry(source)

        report = Bundler(build, tmp_path / "out").run()

        assert report.written == []
        assert not (tmp_path / "out").exists()

    def test__unknown_transform__raises_build_error(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "page.md", "x")
        build = (
            BuildConfig()
            .with_loader(LoaderRule(test=re.compile(r"\.md$"), loaders=(LoaderSpec("jade"),)))
            .with_entry(source)
            .with_plugin(ExtractStep(source=source, filename="page.html"))
        )

        with pytest.raises(BuildError, match="Unknown transform"):
            Bundler(build, tmp_path / "out").run()

    def test__pipeline__runs_left_to_right(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "page.html", "---\nlocals:\n  name: World\n---\nHello {{ name }}")
        build = (
            BuildConfig()
            .with_loader(
                LoaderRule(
                    test=re.compile(r"\.html$"),
                    loaders=(LoaderSpec("template"), LoaderSpec("render")),
                ),
            )
            .with_entry(source)
            .with_plugin(ExtractStep(source=source, filename="nested/page.html"))
        )

        report = Bundler(build, tmp_path / "out", cache=BuildCache(tmp_path / ".cache")).run()

        assert report.written == ["nested/page.html"]
        assert (tmp_path / "out" / "nested" / "page.html").read_text() == "Hello World"


class TestCreateEnvironment:
    """Tests for create_environment()."""

    def test__markdown_filter__dedents_and_renders(self, tmp_path: Path) -> None:
        env = create_environment([tmp_path])

        html = env.from_string("{% filter markdown %}\n    # Title\n{% endfilter %}").render()

        assert "<h1>Title</h1>" in html

    def test__variables__autoescaped(self, tmp_path: Path) -> None:
        env = create_environment([tmp_path])

        html = env.from_string("{{ value }}").render(value="<b>")

        assert html == "&lt;b&gt;"
