"""tack - a small build driver for C projects."""

__version__ = "0.6.0"
