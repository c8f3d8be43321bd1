"""Custom exceptions used across LoadFlow."""


class LoadFlowError(Exception):
    """Base error for the application."""


class ConfigError(LoadFlowError):
    """Configuration related error."""


class CredentialsError(LoadFlowError):
    """Credentials missing from the environment."""


class BrowserError(LoadFlowError):
    """Raised when browser automation fails."""
