"""chocowat.values

Runtime value representation shared by the code generator and the host stub.

Every value is a 64-bit word whose low bit is the type tag:

- None  -> 0
- False -> 2
- True  -> 4
- int n -> 2n + 1 (always odd)

`e(n) = 2n + 1` is strictly increasing, so `<`, `<=`, `>`, `>=` and `==` can
be evaluated on encoded words directly. Arithmetic has to decode first
(arithmetic shift right by one) and re-encode the result.
"""

from __future__ import annotations

from typing import Optional, Union

WORD_SIZE = 8
WORD_BITS = 64

NONE = 0
FALSE = 2
TRUE = 4

# One bit of the word is spent on the tag.
INT_MIN = -(1 << (WORD_BITS - 2))
INT_MAX = (1 << (WORD_BITS - 2)) - 1

Value = Optional[Union[bool, int]]


def is_int_word(word: int) -> bool:
    return word & 1 == 1


def encode_int(n: int) -> int:
    if n < INT_MIN or n > INT_MAX:
        raise OverflowError(f"integer {n} does not fit in a tagged word")
    return (n << 1) | 1


def wrap_int(n: int) -> int:
    """Reduce `n` into [INT_MIN, INT_MAX], the way i64 arithmetic on the payload wraps."""
    return (n - INT_MIN) % (INT_MAX - INT_MIN + 1) + INT_MIN


def decode_int(word: int) -> int:
    return word >> 1


def encode_bool(b: bool) -> int:
    return TRUE if b else FALSE


def encode(value: Value) -> int:
    """Encode a Python value (None, bool or int) as a tagged word."""
    # bool is a subclass of int, so check it first.
    if value is None:
        return NONE
    if isinstance(value, bool):
        return encode_bool(value)
    if isinstance(value, int):
        return encode_int(value)
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


def decode(word: int) -> Value:
    """Inverse of `encode`."""
    if is_int_word(word):
        return decode_int(word)
    if word == NONE:
        return None
    if word == FALSE:
        return False
    if word == TRUE:
        return True
    raise ValueError(f"malformed tagged word: {word}")


def render(word: int) -> str:
    """Text printed for a word, the way Python prints the decoded value."""
    return str(decode(word))
