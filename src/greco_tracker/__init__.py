"""greco-tracker: commodity-basket purchasing power of currencies."""

__version__ = "0.1.0"
