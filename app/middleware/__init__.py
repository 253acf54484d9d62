"""Request/response hooks registered by the app factory."""
