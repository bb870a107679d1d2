"""Core type definitions."""

from typing import NewType

# Public URL path for a page (e.g., "/about", "" for the site root)
# Distinct from filesystem Path to catch type mismatches
URLPath = NewType("URLPath", str)

# Output path relative to the build output root (e.g., "about/index.html")
OutputPath = NewType("OutputPath", str)
