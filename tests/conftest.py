"""Shared test fixtures."""

from pathlib import Path

import pytest
from pagestage.config import (
    Config,
    LiveReloadConfig,
    PagesConfig,
    ServerConfig,
    SiteConfig,
)

LAYOUT = """<html>
<head>
<title>{{ title }}</title>
<link rel="canonical" href="{{ url }}">
</head>
<body data-path="{{ path }}" data-source="{{ filename }}">
{% block main %}{% endblock %}
</body>
</html>
"""


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a project with a layout template and an empty pages directory."""
    src = tmp_path / "src"
    (src / "pages").mkdir(parents=True)
    (src / "layout.html").write_text(LAYOUT)
    return tmp_path


@pytest.fixture
def pages_dir(project_dir: Path) -> Path:
    return project_dir / "src" / "pages"


@pytest.fixture
def test_config(project_dir: Path) -> Config:
    """Create a test configuration rooted at project_dir."""
    return Config(
        site=SiteConfig(url="http://example.com"),
        pages=PagesConfig(
            source_dir=project_dir / "src" / "pages",
            resolve_dirs=[project_dir / "src"],
            output_dir=project_dir / "build",
            cache_dir=project_dir / ".cache",
            project_root=project_dir,
        ),
        server=ServerConfig(),
        live_reload=LiveReloadConfig(enabled=False),
    )
