"""tada: a terminal todo manager backed by Markdown files."""

__version__ = "0.4.0"
