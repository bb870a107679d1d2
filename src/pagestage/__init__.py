"""Pagestage - static pages from templates and Markdown."""

__version__ = "0.1.0"
