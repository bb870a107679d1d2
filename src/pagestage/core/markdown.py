"""Markdown to HTML rendering with syntax highlighting.

GitHub-flavored syntax (tables, strikethrough, autolinks, task lists) is
enabled, hard line breaks are not, and raw HTML in the source is escaped.
Fenced code is highlighted with Pygments, guessing the language when the
fence has no info string.
"""

import logging

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.lexers.special import TextLexer
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

CODE_CLASS_PREFIX = "lang-"
GFM_PLUGINS = ["table", "strikethrough", "url", "task_lists"]


class HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer that escapes raw HTML and highlights code blocks."""

    def __init__(self) -> None:
        super().__init__(escape=True)
        self._formatter = HtmlFormatter(nowrap=True)

    def block_code(self, code: str, info: str | None = None) -> str:
        lexer = find_lexer(code, info)
        highlighted = highlight(code, lexer, self._formatter)
        alias = lexer.aliases[0] if lexer.aliases else "text"
        return f'<pre><code class="{CODE_CLASS_PREFIX}{alias}">{highlighted}</code></pre>\n'


def find_lexer(code: str, info: str | None = None) -> Lexer:
    """Pick a lexer from the fence info string, falling back to detection."""
    if info:
        name = info.strip().split(None, 1)[0]
        try:
            return get_lexer_by_name(name)
        except ClassNotFound:
            logger.debug(f"No lexer named '{name}', guessing from content")

    try:
        return guess_lexer(code)
    except ClassNotFound:
        return TextLexer()


_markdown = mistune.create_markdown(
    renderer=HighlightRenderer(),
    hard_wrap=False,
    plugins=GFM_PLUGINS,
)


def render_markdown(text: str) -> str:
    """Render Markdown text to sanitized HTML.

    Args:
        text: Markdown source

    Returns:
        HTML fragment
    """
    logger.debug(f"Rendering {len(text)} characters of markdown")
    html = _markdown(text)
    logger.debug(f"Rendered to {len(html)} characters of HTML")
    return html
