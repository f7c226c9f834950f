"""chocowat.host

Host-side interop stub: Python implementations of the procedures a compiled
module imports from the `imports` namespace. They take and return tagged
words, using the same codec as the code generator.
"""

from __future__ import annotations

import sys
from typing import Callable, Dict, List, Optional, TextIO

from chocowat.values import INT_MAX, INT_MIN, decode_int, encode_int, render, wrap_int

_PAYLOAD_MODULUS = INT_MAX - INT_MIN + 1


class HostRuntime:
    """Implements print/abs/max/min/pow on tagged words."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self.output: List[str] = []

    def print(self, word: int) -> int:
        text = render(word)
        self.output.append(text)
        self.stream.write(text + "\n")
        return word

    def abs(self, word: int) -> int:
        return encode_int(wrap_int(abs(decode_int(word))))

    def max(self, left: int, right: int) -> int:
        return encode_int(max(decode_int(left), decode_int(right)))

    def min(self, left: int, right: int) -> int:
        return encode_int(min(decode_int(left), decode_int(right)))

    def pow(self, base: int, exponent: int) -> int:
        b, e = decode_int(base), decode_int(exponent)
        if e < 0:
            # no fractions at runtime; truncate toward zero
            if b == 0:
                raise ZeroDivisionError("pow(): zero cannot be raised to a negative power")
            if b == 1 or (b == -1 and e % 2 == 0):
                return encode_int(1)
            if b == -1:
                return encode_int(-1)
            return encode_int(0)
        # Overflow wraps like the generated arithmetic; the modulus keeps the
        # intermediate result bounded.
        return encode_int(wrap_int(pow(b, e, _PAYLOAD_MODULUS)))

    def imports(self) -> Dict[str, Callable[..., int]]:
        """Import name -> callable, for wiring into a VM's import object."""
        return {
            "print": self.print,
            "abs": self.abs,
            "max": self.max,
            "min": self.min,
            "pow": self.pow,
        }
