"""phantm: provision tenant PostgreSQL schemas from a SQL template."""

__version__ = "1.0.0"
