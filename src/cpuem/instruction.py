"""Instruction definitions, operand decoding and deferred mutations.

An Instruction is a name, an ordered operand-type signature and a pure
action. The action receives a read-only CPUState plus the decoded
arguments and returns a list of Mutations; it never touches the CPU.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .common import Byte
from .memory import Memory
from .register import Register
from .state import CPUState


# =============================================================================
# Mutations
# =============================================================================

@dataclass(frozen=True)
class WriteRegister:
    register: Register
    value: Byte


@dataclass(frozen=True)
class WriteMemory:
    address: Byte
    value: Byte


@dataclass(frozen=True)
class Halt:
    pass


Mutation = Union[WriteRegister, WriteMemory, Halt]


# =============================================================================
# Arguments
# =============================================================================

@dataclass(frozen=True)
class ConstantArg:
    """Literal operand byte."""
    value: Byte

    def to_bytes(self) -> List[Byte]:
        return [self.value]

    def __str__(self) -> str:
        return f"0x{self.value:02x}"


@dataclass(frozen=True)
class RegisterArg:
    """Register operand."""
    register: Register

    def to_bytes(self) -> List[Byte]:
        return self.register.to_bytes()

    def __str__(self) -> str:
        return self.register.name


Argument = Union[ConstantArg, RegisterArg]


class ArgType(Enum):
    CONSTANT = "constant"
    REGISTER = "register"

    def parse(self, b: Byte) -> Optional[Argument]:
        """Decode one operand byte, or None if it is not valid for this type."""
        if self is ArgType.CONSTANT:
            return ConstantArg(Byte(b))
        register = Register.from_byte(b)
        if register is None:
            return None
        return RegisterArg(register)


# =============================================================================
# Instruction
# =============================================================================

InstructionAction = Callable[[CPUState, Sequence[Argument]], List[Mutation]]


@dataclass(frozen=True)
class Instruction:
    """Immutable instruction definition.

    Attributes:
        name: Mnemonic (e.g. "ADD")
        arg_types: Ordered operand-type signature
        action: Pure function (state, args) -> mutations
    """
    name: str
    arg_types: Tuple[ArgType, ...]
    action: InstructionAction

    @property
    def size(self) -> int:
        """Encoded length in bytes, opcode included."""
        return 1 + len(self.arg_types)

    def parse_args(self, memory: Memory, ip: Byte) -> Optional[Tuple[List[Argument], Byte]]:
        """Decode the operands that follow the opcode.

        Args:
            memory: Memory to read operand bytes from
            ip: Address of the first operand byte

        Returns:
            (arguments, address just past the last operand), or None as soon
            as one operand fails to decode
        """
        args: List[Argument] = []
        ip = Byte(ip)
        for arg_type in self.arg_types:
            arg = arg_type.parse(memory.read(ip))
            if arg is None:
                return None
            args.append(arg)
            ip += 1
        return args, ip

    def run(self, state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
        return list(self.action(state, args))
