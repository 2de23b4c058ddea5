"""Workshop: sessions, role authorization, rate limiting and request timing."""

__version__ = "0.1.0"
