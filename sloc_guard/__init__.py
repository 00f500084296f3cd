"""sloc-guard: content and structure limits for source trees."""

__version__ = "0.4.0"
