"""MindMate: mood inference, analytics and the wellness companion API."""

__version__ = "0.1.0"
