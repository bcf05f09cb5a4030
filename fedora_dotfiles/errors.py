# ----------------------------------------------------------------
# Custom Exceptions
# ----------------------------------------------------------------
class DotfilesError(Exception):
    """Base exception for dotfiles toolkit errors."""

    pass


class ConfigurationError(DotfilesError):
    """Raised when the backup configuration is missing or unreadable."""

    pass


class DependencyError(DotfilesError):
    """Raised when a required system command is missing."""

    pass


class EnrollmentError(DotfilesError):
    """Raised when a TPM2 enrollment step cannot continue."""

    pass


class OperationCancelled(DotfilesError):
    """Raised when the user declines a step that ends the run."""

    pass
