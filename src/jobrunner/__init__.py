"""Out-of-process background job runner."""

__version__ = "0.1.0"
