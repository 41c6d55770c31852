"""Ferry captain trip progression service."""

__version__ = "1.0.0"
