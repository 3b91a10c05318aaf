"""Keep Markdown notes in sync with the templates they reference."""

__version__ = "0.1.0"
