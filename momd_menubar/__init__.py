"""Status-bar agent that renders a menu served by a local momd backend."""

__version__ = "0.1.0"
