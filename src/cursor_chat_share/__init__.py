"""Extract, share and watch Cursor composer chat history."""

__version__ = "0.1.0"
