"""Media ripper for coomer and kemono creator pages, posts and Discord archives."""

__version__ = "0.47.1"