"""LocalDrive: path-indexed file/folder storage engine."""

__version__ = "0.1.0"
