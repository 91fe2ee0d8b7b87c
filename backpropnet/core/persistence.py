"""Token-level reader and writer for the line-oriented network format.

Every value is preceded by a literal tag. Floats are written with ``repr`` so
that reading them back restores the exact same double.
"""

from __future__ import annotations

import re
from enum import IntEnum
from typing import List, Optional, Tuple, Type, TypeVar

import numpy as np

from .errors import PersistenceError
from .seeding import KEY_WORDS, STATE_TAG
from .types import Array

E = TypeVar("E", bound=IntEnum)

_TOKEN = re.compile(r"\S+")
_UINT32_MAX = 2**32 - 1


def format_token(value: object) -> str:
    if isinstance(value, (bool, np.bool_)):
        return "1" if value else "0"
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        return repr(float(value))
    return str(value)


class TokenWriter:
    """Accumulates tagged lines; :meth:`getvalue` returns the document."""

    def __init__(self) -> None:
        self._lines: List[str] = []

    def line(self, *tokens: object, indent: int = 0) -> None:
        self._lines.append(" " * indent + " ".join(format_token(token) for token in tokens))

    def blank(self) -> None:
        self._lines.append("")

    def generator(self, tag: str, state: List[int], indent: int = 0) -> None:
        self.line(tag, STATE_TAG, *state, indent=indent)

    def getvalue(self) -> str:
        return "\n".join(self._lines) + "\n"


class TokenReader:
    """Whitespace tokenizer that validates tags and remembers line numbers."""

    def __init__(self, text: str, source: str = "<string>") -> None:
        self.source = source
        self._tokens: List[Tuple[str, int]] = [
            (match.group(), lineno)
            for lineno, line in enumerate(text.splitlines(), start=1)
            for match in _TOKEN.finditer(line)
        ]
        self._pos = 0

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._tokens)

    def _fail(self, message: str, lineno: Optional[int], **context: object) -> PersistenceError:
        where = f"{self.source}:{lineno}" if lineno is not None else f"{self.source}:EOF"
        return PersistenceError(
            f"[Load network] Network file is ill-formed. {message} ({where})",
            context={"source": self.source, "line": lineno, **context},
        )

    def next(self, expected: str = "a value") -> Tuple[str, int]:
        if self.exhausted:
            raise self._fail(f"Expected: {expected} Provided: end of file.", None, expected=expected)
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def expect(self, tag: str) -> None:
        token, lineno = self.next(tag)
        if token != tag:
            raise self._fail(
                f"Expected: {tag} Provided: {token}.", lineno, expected=tag, found=token
            )

    def read_int(self, tag: Optional[str] = None) -> int:
        if tag is not None:
            self.expect(tag)
        token, lineno = self.next("an integer")
        return self._to_int(token, lineno, tag)

    def _to_int(self, token: str, lineno: int, tag: Optional[str]) -> int:
        try:
            return int(token)
        except ValueError:
            raise self._fail(
                f"Expected an integer after {tag or 'tag'} Provided: {token}.", lineno, found=token
            ) from None

    def read_float(self, tag: Optional[str] = None) -> float:
        if tag is not None:
            self.expect(tag)
        token, lineno = self.next("a number")
        try:
            return float(token)
        except ValueError:
            raise self._fail(
                f"Expected a number after {tag or 'tag'} Provided: {token}.", lineno, found=token
            ) from None

    def read_floats(self, count: int, tag: Optional[str] = None) -> Array:
        if tag is not None:
            self.expect(tag)
        return np.array([self.read_float() for _ in range(count)], dtype=np.float64)

    def read_ints(self, count: int, tag: Optional[str] = None) -> List[int]:
        if tag is not None:
            self.expect(tag)
        return [self.read_int() for _ in range(count)]

    def read_flags(self, count: int, tag: Optional[str] = None) -> Array:
        values = self.read_ints(count, tag)
        if any(value not in (0, 1) for value in values):
            raise self._fail(f"Expected 0/1 flags after {tag}.", None, expected="0/1")
        return np.array(values, dtype=bool)

    def read_count(self, tag: str) -> int:
        value = self.read_int(tag)
        if value < 0:
            raise self._fail(f"{tag} must not be negative, got {value}.", None, found=value)
        return value

    def read_enum(self, tag: str, enum_cls: Type[E]) -> E:
        value = self.read_int(tag)
        try:
            return enum_cls(value)
        except ValueError:
            raise self._fail(
                f"Unknown {enum_cls.__name__} id {value} after {tag}", None, found=value
            ) from None

    def read_generator(self, tag: str) -> List[int]:
        self.expect(tag)
        self.expect(STATE_TAG)
        state: List[int] = []
        for index in range(KEY_WORDS + 1):
            token, lineno = self.next("an integer")
            value = self._to_int(token, lineno, tag)
            limit = KEY_WORDS if index == 0 else _UINT32_MAX
            if not 0 <= value <= limit:
                what = "position" if index == 0 else f"key word {index}"
                raise self._fail(
                    f"{STATE_TAG} {what} out of range: {token}.", lineno, expected=f"0..{limit}", found=token
                )
            state.append(value)
        return state


__all__ = ["TokenReader", "TokenWriter", "format_token"]
