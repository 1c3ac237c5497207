"""Custom exceptions for driver onboarding."""


class OnboardingValidationError(ValueError):
    """Raised when caller-supplied data is malformed. Nothing has been written."""
    pass


class InvalidTransitionError(OnboardingValidationError):
    """Raised when a driver status change is not allowed from the current status."""
    pass


class PlateConflictError(Exception):
    """Raised when a plate is already claimed by another driver."""

    def __init__(self, plate: str, message: str = "This plate is already assigned to another driver."):
        super().__init__(message)
        self.plate = plate


class TransactionConflictError(Exception):
    """Raised when an optimistic transaction keeps losing the race after all retries."""
    pass


class StaleRecordError(Exception):
    """A record changed between read and commit. Internal to the store's retry loop."""

    def __init__(self, path: str):
        super().__init__(f"Record changed concurrently: {path}")
        self.path = path
