"""
Core utilities and configuration for the document sync service.

This package provides foundational components used throughout the service:

Modules:
    config: Application configuration from environment variables and YAML
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import load_settings
    from core.exceptions import UpstreamError, SyncConnectionError
    from core.logging import setup_logging

Example:
    settings = load_settings("sync.yaml")
    setup_logging(settings)
"""

__all__ = [
    "Settings",
    "load_settings",
    "setup_logging",
    # Exceptions
    "SyncException",
    "RecoverableError",
    "FatalError",
    "UpstreamError",
    "MalformedResponseError",
    "SyncConnectionError",
    "MissingFieldError",
    "AlertTransportError",
    "ConfigurationError",
]
