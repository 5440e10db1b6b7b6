"""GitHub pull request mirror with AI categorization."""

__version__ = "0.1.0"
