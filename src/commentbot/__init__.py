"""Group chat comment bot with persisted thread memory."""

__version__ = "0.1.0"
