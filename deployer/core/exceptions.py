from typing import Optional


class AppBaseError(Exception):
    """Base class for all custom exceptions in the application."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class ConfigurationError(AppBaseError):
    """Raised for configuration issues (missing settings, invalid values)."""
    pass

class ResolutionError(AppBaseError):
    """Raised when clarification ends without a usable deployment request."""
    pass

class DialogDeclined(ResolutionError):
    """Raised by a dialog when the user declines a prompt or it times out."""
    pass

class RepositoryHostError(AppBaseError):
    """Raised when the repository host API (e.g. branch listing) fails."""
    pass

class FetchError(AppBaseError):
    """Raised when the source archive cannot be downloaded."""
    pass

class PackagingError(AppBaseError):
    """Raised when the downloaded archive is empty or malformed."""
    pass

class PlatformError(AppBaseError):
    """Raised when a Cloud Foundry API call fails."""
    def __init__(self, message: str, status_code: Optional[int] = None, description: Optional[str] = None, details: dict = None):
        super().__init__(message, details)
        self.status_code = status_code
        self.description = description or message

class ProvisionError(AppBaseError):
    """
    Raised when provisioning fails. Only app creation failures are fatal;
    route lookup, creation and association failures are reported and skipped.
    """
    def __init__(self, message: str, fatal: bool = True, details: dict = None):
        super().__init__(message, details)
        self.fatal = fatal

class UploadError(AppBaseError):
    """Raised when the application package is missing or its upload fails."""
    pass

class LaunchError(AppBaseError):
    """Raised when the platform rejects the start request."""
    pass
