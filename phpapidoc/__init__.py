"""Static analysis of PHP sources for API documentation."""

__version__ = "0.1.0"
