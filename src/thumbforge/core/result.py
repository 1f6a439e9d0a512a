"""Result type for fallible operations.

Repositories and services return ``Ok(value)`` or ``Err(error)`` instead of raising,
so every failure mode is visible in the signature. Both variants are frozen
dataclasses and support structural pattern matching:

    match await repo.find_by_id(thumbnail_id):
        case Ok(None):
            ...
        case Ok(thumbnail):
            ...
        case Err(error):
            ...
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, NoReturn, TypeVar, Union

from thumbforge.core.errors import BaseError

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=BaseError)


class UnwrapError(Exception):
    """Raised when unwrap_err() is called on an Ok value."""

    pass


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise UnwrapError(f"Called unwrap_err on Ok: {self.value!r}")

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], "Result[U, Any]"]) -> "Result[U, Any]":
        return fn(self.value)

    def match(self, *, ok: Callable[[T], U], err: Callable[[Any], U]) -> U:
        return ok(self.value)


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying a typed error."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        # The carried error is itself an exception
        raise self.error

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[Any], Any]) -> "Err[E]":
        return self

    def flat_map(self, fn: Callable[[Any], Any]) -> "Err[E]":
        return self

    def match(self, *, ok: Callable[[Any], U], err: Callable[[E], U]) -> U:
        return err(self.error)


Result = Union[Ok[T], Err[E]]


def from_try(fn: Callable[[], T], on_error: Callable[[Exception], E]) -> "Result[T, E]":
    """Run a synchronous callable, translating any raised exception into Err.

    Args:
        fn: Zero-argument callable that may raise
        on_error: Maps the raised exception to a typed error

    Returns:
        Ok with the callable's return value, or Err with the mapped error
    """
    try:
        return Ok(fn())
    except Exception as e:
        return Err(on_error(e))


async def from_awaitable(
    fn: Callable[[], Awaitable[T]], on_error: Callable[[Exception], E]
) -> "Result[T, E]":
    """Await a coroutine factory, translating any raised exception into Err.

    Args:
        fn: Zero-argument callable returning an awaitable that may raise
        on_error: Maps the raised exception to a typed error

    Returns:
        Ok with the awaited value, or Err with the mapped error
    """
    try:
        return Ok(await fn())
    except Exception as e:
        return Err(on_error(e))
