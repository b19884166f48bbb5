"""Frame extraction and analysis worker."""

__version__ = "0.1.0"
