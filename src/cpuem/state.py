"""CPUState: Immutable register snapshot for the CPU.

State Components:
    - Registers: A, B, C, D, IP, SP (one Byte each)
    - Halted: Execution termination flag
    - Cycle count: Number of committed steps

Every "mutation" returns a new state object. Instruction actions are handed
the current state and so can never observe an effect that has not been
committed yet.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Mapping, Union

from .common import Byte, BYTE_MASK
from .register import Register, DEFAULT_STACK_POINTER


RegisterRef = Union[Register, str]


def _default_registers() -> Mapping[Register, Byte]:
    registers = {reg: Byte(0) for reg in Register}
    registers[Register.SP] = DEFAULT_STACK_POINTER
    return MappingProxyType(registers)


def _resolve(reg: RegisterRef) -> Register:
    if isinstance(reg, Register):
        return reg
    return Register.from_name(reg)


@dataclass(frozen=True)
class CPUState:
    """Immutable CPU state representation.

    Attributes:
        registers: Read-only mapping of every Register to its Byte value
        halted: Whether a Halt mutation has been applied
        cycle_count: Number of execution cycles completed
    """
    registers: Mapping[Register, Byte] = field(default_factory=_default_registers)
    halted: bool = False
    cycle_count: int = 0

    @property
    def ip(self) -> Byte:
        return self.registers[Register.IP]

    def get_register(self, reg: RegisterRef) -> Byte:
        """Get value of a register.

        Args:
            reg: Register, or register name (case insensitive)

        Raises:
            KeyError: If register doesn't exist
        """
        return self.registers[_resolve(reg)]

    def set_register(self, reg: RegisterRef, value: int) -> "CPUState":
        """Create new state with updated register value (wrapped to a byte)."""
        new_registers = dict(self.registers)
        new_registers[_resolve(reg)] = Byte(value)
        return replace(self, registers=MappingProxyType(new_registers))

    def set_ip(self, value: int) -> "CPUState":
        return self.set_register(Register.IP, value)

    def set_halted(self, halted: bool = True) -> "CPUState":
        return replace(self, halted=halted)

    def increment_cycle(self) -> "CPUState":
        return replace(self, cycle_count=self.cycle_count + 1)

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - All six registers exist and hold values in 0..255
            - Cycle count is non-negative
        """
        if set(self.registers.keys()) != set(Register):
            return False
        for value in self.registers.values():
            if not isinstance(value, int) or not 0 <= value <= BYTE_MASK:
                return False
        return self.cycle_count >= 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a plain copy of all register values keyed by name."""
        return {reg.name: int(value) for reg, value in self.registers.items()}

    def snapshot(self) -> dict:
        """Create a plain-data snapshot of current state for tracing."""
        return {
            "registers": self.dump_registers(),
            "halted": self.halted,
            "cycle_count": self.cycle_count,
        }

    def __str__(self) -> str:
        regs = " ".join(f"{reg.name}={int(value)}" for reg, value in self.registers.items())
        return f"<CPU {regs} halted={str(self.halted).lower()}>"
