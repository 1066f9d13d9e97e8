"""Chinese reading and annotation tool for Vietnamese readers."""

__version__ = "0.1.0"
