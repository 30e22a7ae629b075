"""Post images from a local directory to a Matrix room."""

__version__ = "1.0.0"
