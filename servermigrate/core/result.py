from typing import Generic, TypeVar, Optional, Any, Dict, List, Tuple, cast
from dataclasses import dataclass

T = TypeVar('T')
E = TypeVar('E', bound=Exception)


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """Outcome of one unit of work (a dataset, a snapshot, a service binding)"""
    _value: Optional[T] = None
    _error: Optional[E] = None

    def __post_init__(self):
        # Ensure exactly one of value or error is set
        if (self._value is None) == (self._error is None):
            raise ValueError("Result must have exactly one of value or error")

    @classmethod
    def success(cls, value: T) -> 'Result[T, E]':
        """Create a successful result"""
        return cls(_value=value)

    @classmethod
    def failure(cls, error: E) -> 'Result[T, E]':
        """Create a failed result"""
        return cls(_error=error)

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        """Get the success value (raises ValueError if result is failure)"""
        if self.is_failure:
            raise ValueError("Cannot get value from failed result")
        return cast(T, self._value)

    @property
    def error(self) -> E:
        """Get the error (raises ValueError if result is success)"""
        if self.is_success:
            raise ValueError("Cannot get error from successful result")
        return cast(E, self._error)

    def value_or(self, default: T) -> T:
        return cast(T, self._value) if self.is_success else default

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization"""
        if self.is_success:
            value = self._value
            return {
                'success': True,
                'value': value.to_dict() if hasattr(value, 'to_dict') else str(value),
                'error': None
            }
        error = cast(E, self._error)
        return {
            'success': False,
            'value': None,
            'error': error.to_dict() if hasattr(error, 'to_dict') else str(error)
        }

    def __bool__(self) -> bool:
        return self.is_success

    def __str__(self) -> str:
        if self.is_success:
            return f"Success({self._value})"
        return f"Failure({self._error})"

    def __repr__(self) -> str:
        return self.__str__()


def partition_results(results: List[Result[T, E]]) -> Tuple[List[T], List[E]]:
    """Split results into (values, errors), keeping the original order"""
    values: List[T] = []
    errors: List[E] = []
    for result in results:
        if result.is_success:
            values.append(result.value)
        else:
            errors.append(result.error)
    return values, errors

