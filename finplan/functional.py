"""Lookup and build results that carry absence or an error instead of raising."""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


@dataclass(frozen=True)
class Some(Generic[T]):
    value: T

    def map(self, f: Callable[[T], U]) -> 'Some[U]':
        return Some(f(self.value))

    def get_or_else(self, default: T) -> T:
        return self.value

    def is_none(self) -> bool:
        return False


@dataclass(frozen=True)
class Nothing:
    def map(self, f: Callable) -> 'Nothing':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_none(self) -> bool:
        return True


Maybe = Union[Some[T], Nothing]


@dataclass(frozen=True)
class Right(Generic[T]):
    value: T

    def get_or_else(self, default: T) -> T:
        return self.value

    def is_left(self) -> bool:
        return False

    def get_error(self):
        raise ValueError("Right carries no error")


@dataclass(frozen=True)
class Left(Generic[E]):
    error: E

    def get_or_else(self, default: T) -> T:
        return default

    def is_left(self) -> bool:
        return True

    def get_error(self) -> E:
        return self.error


Either = Union[Left[E], Right[T]]
