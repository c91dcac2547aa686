"""Register: the six logical CPU registers and their wire encoding.

Encoding:
    A=0x00, B=0x01, C=0x02, D=0x03, IP=0x04, SP=0x06

0x05 is not assigned to any register and never decodes.
"""

from enum import Enum
from typing import List, Optional

from .common import Byte


class Register(Enum):
    """Logical register, valued by its byte encoding."""

    A = 0x00
    B = 0x01
    C = 0x02
    D = 0x03
    IP = 0x04
    SP = 0x06

    @classmethod
    def from_byte(cls, b: int) -> Optional["Register"]:
        """Decode a register byte, returning None for unmapped values."""
        try:
            return cls(int(b))
        except ValueError:
            return None

    @classmethod
    def from_name(cls, name: str) -> "Register":
        """Look up a register by name (case insensitive).

        Raises:
            KeyError: If no register has that name
        """
        try:
            return cls[name.upper()]
        except KeyError:
            raise KeyError(f"Invalid register: {name}") from None

    def to_byte(self) -> Byte:
        return Byte(self.value)

    def to_bytes(self) -> List[Byte]:
        return [self.to_byte()]


# Initial register values; SP starts at the conventional stack region.
DEFAULT_STACK_POINTER = Byte(0xD0)
