"""PageCMS: a minimal content management server."""

__version__ = "0.1.0"
__description__ = "A minimal content management server"
