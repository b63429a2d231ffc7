"""fblib - library dependency resolution and installation for embedded projects."""

__version__ = "0.1.0"
