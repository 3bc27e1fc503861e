"""repolens: structural model and technical-debt ranking for JS/TS repositories."""

__version__ = "0.1.0"
