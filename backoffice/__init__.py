"""Back-office batch tooling for the point-of-sale catalog, clients and sales."""

__version__ = "0.3.0"
