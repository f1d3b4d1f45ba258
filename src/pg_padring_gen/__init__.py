"""Power grid and I/O pad ring synthesis for a rectangular die."""

__version__ = "0.1.0"
