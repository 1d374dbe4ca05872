"""islandgen: static site generation with island hydration."""

__version__ = "0.1.0"
