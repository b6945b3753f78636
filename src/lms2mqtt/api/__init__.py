"""API clients for the Logitech Media Server."""
