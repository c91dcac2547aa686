"""InstructionParser: the fixed opcode table and instruction fetch.

Instruction set:
    0x00 NUM <reg> <const>   reg := const
    0x01 MOV <dst> <src>     dst := src
    0x02 ADD <dst> <src>     dst := dst + src (wrapping)
    0x03 SUB <dst> <src>     dst := dst - src (wrapping)
    0x30 SET <adr> <reg>     memory[adr] := reg
    0xff HLT                 halt

The table is built once at import time and exposed read-only; there is no
way to add or replace an opcode at runtime.
"""

from enum import IntEnum
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .common import Byte
from .instruction import (
    Argument,
    ArgType,
    ConstantArg,
    Halt,
    Instruction,
    Mutation,
    RegisterArg,
    WriteMemory,
    WriteRegister,
)
from .memory import Memory
from .register import Register
from .state import CPUState


class Opcode(IntEnum):
    NUM = 0x00
    MOV = 0x01
    ADD = 0x02
    SUB = 0x03
    SET = 0x30
    HLT = 0xFF


# =============================================================================
# Instruction Actions
# =============================================================================

def _op_num(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """NUM reg, const - Load constant into register."""
    dest, constant = args
    return [WriteRegister(dest.register, constant.value)]


def _op_mov(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """MOV dst, src - Copy register to register."""
    dest, src = args
    return [WriteRegister(dest.register, state.get_register(src.register))]


def _op_add(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """ADD dst, src - dst := dst + src, wrapping."""
    dest, src = args
    value = state.get_register(dest.register) + state.get_register(src.register)
    return [WriteRegister(dest.register, value)]


def _op_sub(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """SUB dst, src - dst := dst - src, wrapping."""
    dest, src = args
    value = state.get_register(dest.register) - state.get_register(src.register)
    return [WriteRegister(dest.register, value)]


def _op_set(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """SET adr, reg - Store register into memory."""
    adr, src = args
    return [WriteMemory(adr.value, state.get_register(src.register))]


def _op_hlt(state: CPUState, args: Sequence[Argument]) -> List[Mutation]:
    """HLT - Stop execution."""
    return [Halt()]


_REG = ArgType.REGISTER
_CONST = ArgType.CONSTANT

INSTRUCTIONS: Mapping[Opcode, Instruction] = MappingProxyType({
    Opcode.NUM: Instruction("NUM", (_REG, _CONST), _op_num),
    Opcode.MOV: Instruction("MOV", (_REG, _REG), _op_mov),
    Opcode.ADD: Instruction("ADD", (_REG, _REG), _op_add),
    Opcode.SUB: Instruction("SUB", (_REG, _REG), _op_sub),
    Opcode.SET: Instruction("SET", (_CONST, _REG), _op_set),
    Opcode.HLT: Instruction("HLT", (), _op_hlt),
})


class InstructionParser:
    """Opcode lookup over the fixed instruction table.

    Attributes:
        instructions: Read-only opcode -> Instruction mapping
    """

    def __init__(self):
        self.instructions = INSTRUCTIONS

    def get_valid_opcodes(self) -> set:
        return {Byte(op) for op in self.instructions}

    def lookup(self, opcode: int) -> Optional[Instruction]:
        """Find the instruction for an opcode byte, or None."""
        return self.instructions.get(int(opcode))

    def parse(self, memory: Memory, ip: Byte) -> Tuple[Byte, Optional[Instruction], Byte]:
        """Fetch the instruction whose opcode is at ``ip``.

        The opcode byte is read exactly once.

        Returns:
            (opcode byte, instruction or None if the opcode is unknown,
            address of the first operand)
        """
        opcode = memory.read(ip)
        return opcode, self.lookup(opcode), Byte(ip) + 1


# Singleton parser instance
_parser: Optional[InstructionParser] = None


def get_parser() -> InstructionParser:
    """Get the shared (stateless) instruction parser."""
    global _parser
    if _parser is None:
        _parser = InstructionParser()
    return _parser


def encode(opcode: Union[Opcode, int], *args: Union[Register, int, Argument]) -> List[Byte]:
    """Encode one instruction to bytes from structured operands.

    Operands may be Registers, plain integers (constants) or Arguments.
    The operand kinds are checked against the instruction's signature.

    Raises:
        ValueError: If the opcode is unknown or the operands don't match
    """
    instruction = get_parser().lookup(opcode)
    if instruction is None:
        raise ValueError(f"Unknown opcode: 0x{int(opcode):02x}")
    if len(args) != len(instruction.arg_types):
        raise ValueError(
            f"{instruction.name} expects {len(instruction.arg_types)} operands, got {len(args)}"
        )

    encoded = [Byte(opcode)]
    for arg_type, arg in zip(instruction.arg_types, args):
        if isinstance(arg, Register):
            arg = RegisterArg(arg)
        elif isinstance(arg, int):
            if not 0 <= arg <= 0xFF:
                raise ValueError(f"Constant out of byte range: {arg}")
            arg = ConstantArg(Byte(arg))
        expected = RegisterArg if arg_type is ArgType.REGISTER else ConstantArg
        if not isinstance(arg, expected):
            raise ValueError(f"{instruction.name}: expected {arg_type.value} operand, got {arg}")
        encoded.extend(arg.to_bytes())
    return encoded
