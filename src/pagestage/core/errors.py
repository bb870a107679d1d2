"""Exception hierarchy for the build pipeline."""


class PagestageError(Exception):
    """Base class for pagestage errors."""


class BuildError(PagestageError):
    """A page could not be built."""


class OutputCollisionError(PagestageError):
    """Two or more source files map to the same output path."""

    def __init__(self, collisions: dict[str, list[str]]) -> None:
        self.collisions = collisions
        lines = [
            f"  {output}: {', '.join(sources)}"
            for output, sources in sorted(collisions.items())
        ]
        super().__init__("Output path collision:\n" + "\n".join(lines))


class EnvelopeError(PagestageError, ValueError):
    """Front-matter envelope is malformed."""


class FrontMatterError(PagestageError, ValueError):
    """YAML front matter could not be parsed."""


class LocalsError(PagestageError, ValueError):
    """Page locals contain an unsupported key or value."""
