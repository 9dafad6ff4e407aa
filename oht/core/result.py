"""Result type for explicit error handling.

Every fallible operation in oht returns a Result instead of raising. Callers
branch on the variant, usually with pattern matching:

    match parse_normalized_named("nginx:1.25"):
        case Ok(ref):
            print(ref.name)
        case Err(error):
            print(f"error: {error.message}")

`fold` chains a sequence of fallible steps and stops at the first Err, which
is how the declaration parser walks over its placeholders.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeGuard

__all__ = ["Err", "Ok", "Result", "fold", "is_err", "is_ok"]


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Represents a successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Returns the contained value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map[U](self, f: Callable[[T], U]) -> Ok[U]:
        """Applies a function to the contained value."""
        return Ok(f(self.value))

    def map_err(self, f: Callable[[object], object]) -> Ok[T]:
        return self

    def flat_map[U, E](self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Applies a function that itself returns a Result."""
        return f(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Represents a failed result containing an error."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> None:
        """Raises ValueError, since there is no value.

        Raises:
            ValueError: Always, containing the error.
        """
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or[T](self, default: T) -> T:
        return default

    def map(self, f: Callable[[object], object]) -> Err[E]:
        return self

    def map_err[F](self, f: Callable[[E], F]) -> Err[F]:
        """Applies a function to the contained error.

        This is the usual way to add context while propagating an error.
        """
        return Err(f(self.error))

    def flat_map(self, f: Callable[[object], object]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    """Type guard that checks if a Result is Ok."""
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    """Type guard that checks if a Result is Err."""
    return isinstance(result, Err)


def fold[A, X, E](
    items: Iterable[X],
    initial: A,
    step: Callable[[A, X], Result[A, E]],
) -> Result[A, E]:
    """Thread an accumulator through `step` for each item.

    Stops at the first Err and returns it; later items are never visited.

    Example:
        fold(["1", "2", "x", "3"], 0, lambda acc, s: parse_int(s).map(lambda n: acc + n))
        # -> Err(...) for "x", and "3" is never parsed
    """
    acc = initial
    for item in items:
        result = step(acc, item)
        if isinstance(result, Err):
            return result
        acc = result.value
    return Ok(acc)
