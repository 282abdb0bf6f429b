"""Custom exceptions for ShapeDiff engine.

Mismatches between the two graphs are never raised; they are reported as
differences. These exceptions cover configuration and input problems only.
"""


class ShapeDiffError(Exception):
    """Base exception for ShapeDiff errors."""
    pass


class ProfileError(ShapeDiffError):
    """Raised when a comparison profile cannot be built or loaded."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RuleError(ShapeDiffError):
    """Raised when a comparison rule is invalid."""
    def __init__(self, rule: str, message: str):
        super().__init__(f"Invalid rule '{rule}': {message}")
        self.rule = rule
        self.message = message


class DatasetError(ShapeDiffError):
    """Raised when a comparison dataset is malformed."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid dataset {path}: {reason}")
        self.path = path
        self.reason = reason
