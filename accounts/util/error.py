"""Utility layer errors."""


class UtilError(Exception):
    """Base error for process setup (configuration, wiring)."""

    pass


class ConfigurationError(UtilError):
    """Settings are inconsistent, e.g. Logfire sending without a token."""

    pass


class DependencyInjectionError(UtilError):
    """No provider implementation for the requested component."""

    pass
