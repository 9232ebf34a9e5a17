"""Shared helpers (logging, HTTP, archives) used across the package."""
