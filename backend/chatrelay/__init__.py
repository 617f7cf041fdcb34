"""ChatRelay - session-scoped real-time chat relay."""

__version__ = "1.0.0"
