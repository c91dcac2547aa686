"""Byte: the single 8-bit value type used for data, addresses and opcodes.

All arithmetic between bytes wraps modulo 256, there is no overflow
signal. Because addresses are bytes too, the 256-cell address space is
circular: incrementing past 0xff lands on 0x00.
"""

from typing import List, Union


BYTE_MASK = 0xFF
MEMORY_SIZE = 256


class Byte(int):
    """8-bit unsigned value with wrapping arithmetic.

    Subclasses ``int`` so bytes compare, hash and index exactly like their
    0-255 value. Addition and subtraction return a new ``Byte`` reduced
    modulo 256.
    """

    __slots__ = ()

    def __new__(cls, value: Union[int, "Byte"] = 0) -> "Byte":
        return super().__new__(cls, int(value) & BYTE_MASK)

    def __add__(self, other: int) -> "Byte":
        return Byte(int(self) + int(other))

    __radd__ = __add__

    def __sub__(self, other: int) -> "Byte":
        return Byte(int(self) - int(other))

    def __rsub__(self, other: int) -> "Byte":
        return Byte(int(other) - int(self))

    def __repr__(self) -> str:
        return f"Byte(0x{int(self):02x})"

    def __str__(self) -> str:
        return str(int(self))

    def __format__(self, spec: str) -> str:
        return format(int(self), spec)


def to_byte(value: int) -> Byte:
    """Strictly convert an integer in 0..255 to a Byte.

    Raises:
        ValueError: If value is outside the byte range
    """
    value = int(value)
    if not 0 <= value <= BYTE_MASK:
        raise ValueError(f"Value out of byte range: {value}")
    return Byte(value)


def to_bytes_list(values) -> List[Byte]:
    """Convert an iterable of integers (or a bytes object) to Bytes."""
    return [to_byte(v) for v in values]
