"""Custom exceptions for the toleration defaulter."""

from pathlib import Path


class TolerationDefaulterError(Exception):
    """Base exception for all toleration defaulter errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ConfigurationError(TolerationDefaulterError):
    """Exception raised for invalid settings.

    ``path`` is the settings file involved, or None when the bad values came
    from the environment or the command line.
    """

    def __init__(self, message: str, details: str = None, path: Path | None = None):
        self.path = path
        super().__init__(message, details)


class TolerationDecodeError(TolerationDefaulterError):
    """Exception raised when a pod's persisted tolerations cannot be decoded.

    ``location`` names the part of the pod that failed, for example
    ``spec.tolerations`` or ``metadata.annotations[...]``.
    """

    def __init__(self, message: str, details: str = None, location: str | None = None):
        self.location = location
        super().__init__(message, details)


class AdmissionError(TolerationDefaulterError):
    """Exception raised for malformed admission review documents."""
