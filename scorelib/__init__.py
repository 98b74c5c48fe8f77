"""Score Library: a catalog of music scores with CSV import/export."""

__version__ = "0.1.0"
