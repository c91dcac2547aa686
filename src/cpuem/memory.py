"""Memory: 256-cell store with memory-mapped I/O interception.

Every access consults a hook first and falls back to the stored cells:

    read(adr):   input_map(adr) -> substitute value, or None to read the cell
    write(adr):  output_map(adr, value) -> truthy if consumed, else store

A hook that declines leaves the access to storage, so devices can be
mapped onto any address without the store knowing about them.
"""

import logging
from typing import Callable, List, Optional, Protocol

from .common import Byte, MEMORY_SIZE


logger = logging.getLogger(__name__)


InputMap = Callable[[Byte], Optional[int]]
OutputMap = Callable[[Byte, Byte], Optional[bool]]


def no_input(adr: Byte) -> Optional[int]:
    """Input hook that never intercepts."""
    return None


def no_output(adr: Byte, value: Byte) -> Optional[bool]:
    """Output hook that never consumes a write."""
    return None


class IODevice(Protocol):
    """Anything that can stand behind the two I/O hooks."""

    def read(self, adr: Byte) -> Optional[int]:
        ...

    def write(self, adr: Byte, value: Byte) -> Optional[bool]:
        ...


class Memory:
    """Fixed 256-byte address space with input/output hooks.

    Attributes:
        input_mapping: Read interception hook
        output_mapping: Write interception hook
    """

    def __init__(
        self,
        input_mapping: Optional[InputMap] = None,
        output_mapping: Optional[OutputMap] = None,
    ):
        self._data: List[Byte] = [Byte(0)] * MEMORY_SIZE
        self.input_mapping: InputMap = input_mapping or no_input
        self.output_mapping: OutputMap = output_mapping or no_output

    @classmethod
    def from_device(cls, device: IODevice) -> "Memory":
        """Build a Memory whose hooks are a device's read/write methods."""
        return cls(device.read, device.write)

    def read(self, adr: int) -> Byte:
        """Read a byte, letting the input hook substitute the value."""
        adr = Byte(adr)
        substitute = self.input_mapping(adr)
        if substitute is not None:
            logger.debug("Input hook intercepted read at 0x%02x -> 0x%02x", adr, Byte(substitute))
            return Byte(substitute)
        return self._data[adr]

    def write(self, adr: int, value: int) -> None:
        """Write a byte unless the output hook consumes it."""
        adr = Byte(adr)
        value = Byte(value)
        if self.output_mapping(adr, value):
            logger.debug("Output hook consumed write 0x%02x at 0x%02x", value, adr)
            return
        self._data[adr] = value

    def peek(self, adr: int) -> Byte:
        """Read the stored cell directly, bypassing the input hook."""
        return self._data[Byte(adr)]

    def dump(self) -> List[int]:
        """Return a copy of all stored cells as plain integers."""
        return [int(b) for b in self._data]

    def __len__(self) -> int:
        return MEMORY_SIZE
