from typing import Dict, Any, Optional


class ValidationException(Exception):
    """Base validation exception"""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        super().__init__(message)
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization"""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'field': self.field,
            'value': self.value
        }


class InvalidDatasetNameError(ValidationException):
    """Dataset name validation failed"""

    def __init__(self, dataset_name: str, reason: str):
        super().__init__(f"Invalid dataset name '{dataset_name}': {reason}", 'dataset_name', dataset_name)
        self.reason = reason


class InvalidSnapshotLabelError(ValidationException):
    """Snapshot label validation failed"""

    def __init__(self, label: str, reason: str):
        super().__init__(f"Invalid snapshot label '{label}': {reason}", 'label', label)
        self.reason = reason
