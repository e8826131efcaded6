"""Job listing crawler package."""
