"""cpuem: Minimal 8-bit CPU emulator with memory-mapped I/O.

A 256-byte unified address space, six registers, six opcodes and
wrapping arithmetic. A host supplies program bytes and two I/O hooks and
drives the fetch-decode-execute loop.

Architecture:
    MEMORY -> FETCH -> DECODE -> ACTION(snapshot) -> MUTATIONS -> COMMIT
               |         |            |                 |           |
          [opcode table] [operands] [pure]     [register/memory/halt] [IP first]

Modules:
    common: Byte, the wrapping 8-bit value type
    register: Register enum and its wire encoding
    memory: 256-cell store with input/output hooks
    instruction: Arguments, mutations and Instruction definitions
    instruction_parser: Fixed opcode table and fetch
    state: CPUState immutable register snapshot
    cpu: CPU execution loop and faults
    trace: Execution audit trail
"""

__version__ = "0.1.0"

from .common import Byte
from .register import Register
from .memory import Memory, IODevice, no_input, no_output
from .instruction import (
    ArgType,
    ConstantArg,
    Halt,
    Instruction,
    RegisterArg,
    WriteMemory,
    WriteRegister,
)
from .instruction_parser import InstructionParser, Opcode, encode, get_parser
from .state import CPUState
from .cpu import CPU, CPUError, InvalidArgument, InvalidOpcode, StepRecord
from .trace import ExecutionTraceEntry, TraceRecorder

__all__ = [
    "Byte",
    "Register",
    "Memory",
    "IODevice",
    "no_input",
    "no_output",
    "ArgType",
    "ConstantArg",
    "RegisterArg",
    "Instruction",
    "WriteRegister",
    "WriteMemory",
    "Halt",
    "InstructionParser",
    "Opcode",
    "encode",
    "get_parser",
    "CPUState",
    "CPU",
    "CPUError",
    "StepRecord",
    "InvalidOpcode",
    "InvalidArgument",
    "ExecutionTraceEntry",
    "TraceRecorder",
]
