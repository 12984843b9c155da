"""Paginated product-listing crawler with layered extraction fallbacks."""

from .version import __version__

__all__ = ["__version__"]
