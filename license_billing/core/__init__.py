"""Core configuration, logging, caching and exceptions."""
