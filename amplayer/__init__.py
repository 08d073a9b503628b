"""amplayer: capital allocation and signal coordination for strategy layers."""

__version__ = "0.1.0"
