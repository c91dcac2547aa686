"""CPU: fetch-decode-execute loop over a 256-byte address space.

One step:
    FETCH   opcode at IP            -> InvalidOpcode on a table miss
    DECODE  operands after opcode   -> InvalidArgument on a bad register byte
    EXECUTE action(snapshot, args)  -> list of mutations
    COMMIT  IP := past instruction, then apply mutations in order

Faults are raised before anything is committed, so a failed step leaves
registers, memory and the halted flag exactly as they were.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from .common import Byte, MEMORY_SIZE, to_bytes_list
from .instruction import Argument, Halt, Instruction, Mutation, WriteMemory, WriteRegister
from .instruction_parser import get_parser
from .memory import InputMap, IODevice, Memory, OutputMap
from .register import Register
from .state import CPUState, RegisterRef


logger = logging.getLogger(__name__)


class CPUError(Exception):
    """Base class for faults detected during fetch or decode."""


class InvalidOpcode(CPUError):
    """The byte at the instruction pointer is not a known opcode."""

    def __init__(self, address: int, opcode: int):
        self.address = Byte(address)
        self.opcode = Byte(opcode)
        super().__init__(f"Invalid opcode 0x{self.opcode:02x} at 0x{self.address:02x}")


class InvalidArgument(CPUError):
    """An operand byte does not decode to its declared type."""

    def __init__(self, instruction: str, address: int):
        self.instruction = instruction
        self.address = Byte(address)
        super().__init__(f"Invalid argument for {instruction} at 0x{self.address:02x}")


StepCallback = Callable[["CPU"], None]


@dataclass(frozen=True)
class StepRecord:
    """What one committed step fetched, decoded and applied."""
    address: Byte
    instruction: Instruction
    args: List[Argument]
    mutations: List[Mutation]


class CPU:
    """Byte-addressed CPU with six registers and memory-mapped I/O.

    Attributes:
        ram: Memory owned by this CPU
        state: Current (immutable) register/halted state
        instruction_parser: Fixed opcode table
        last_step: Record of the most recent committed step, or None
    """

    def __init__(
        self,
        input_mapping: Optional[InputMap] = None,
        output_mapping: Optional[OutputMap] = None,
    ):
        """Initialize the CPU.

        Args:
            input_mapping: Read hook, address -> substitute value or None
            output_mapping: Write hook, (address, value) -> truthy if consumed
        """
        self.ram = Memory(input_mapping, output_mapping)
        self.state = CPUState()
        self.instruction_parser = get_parser()
        self.last_step: Optional[StepRecord] = None

    @classmethod
    def with_device(cls, device: IODevice) -> "CPU":
        """Build a CPU whose I/O hooks are a device's read/write methods."""
        return cls(device.read, device.write)

    # =========================================================================
    # Program loading
    # =========================================================================

    def fill_ram(self, program: Iterable[int]) -> None:
        """Write program bytes sequentially from address 0.

        Writes go through the normal memory write path, hooks included.

        Raises:
            ValueError: If the program is longer than the address space or
                contains values outside 0..255. Nothing is written then.
        """
        data = list(program)
        if len(data) > MEMORY_SIZE:
            raise ValueError(f"Program is longer than {MEMORY_SIZE} bytes: {len(data)}")
        data = to_bytes_list(data)
        for adr, value in enumerate(data):
            self.ram.write(adr, value)
        logger.debug("Loaded %d program bytes", len(data))

    # =========================================================================
    # Execution
    # =========================================================================

    def fetch_next_instruction(self) -> Tuple[Instruction, List[Argument], Byte]:
        """Fetch and decode the instruction at IP without changing state.

        Returns:
            (instruction, decoded arguments, address past the instruction)

        Raises:
            InvalidOpcode: The byte at IP matches no opcode
            InvalidArgument: An operand byte fails to decode
        """
        ip = self.state.ip
        opcode, instruction, args_ip = self.instruction_parser.parse(self.ram, ip)
        if instruction is None:
            raise InvalidOpcode(ip, opcode)

        decoded = instruction.parse_args(self.ram, args_ip)
        if decoded is None:
            raise InvalidArgument(instruction.name, ip)
        args, next_ip = decoded
        return instruction, args, next_ip

    def step(self) -> List[Mutation]:
        """Execute a single instruction cycle.

        Returns:
            The mutations that were applied, in order

        Raises:
            CPUError: On a fetch or decode fault (no state modified)
            RuntimeError: If the CPU is halted
        """
        if self.state.halted:
            raise RuntimeError("CPU is halted")

        try:
            instruction, args, next_ip = self.fetch_next_instruction()
        except CPUError as e:
            logger.debug("Fault: %s", e)
            raise

        logger.debug(
            "0x%02x: %s %s", self.state.ip, instruction.name, ", ".join(str(a) for a in args)
        )
        address = self.state.ip
        mutations = instruction.run(self.state, args)

        self.state = self.state.set_ip(next_ip)
        for mutation in mutations:
            self._apply(mutation)
        self.state = self.state.increment_cycle()
        self.last_step = StepRecord(address, instruction, args, mutations)

        if self.state.halted:
            logger.info("CPU halted at 0x%02x after %d cycles", self.state.ip, self.state.cycle_count)
        return mutations

    def _apply(self, mutation: Mutation) -> None:
        if isinstance(mutation, WriteRegister):
            self.state = self.state.set_register(mutation.register, mutation.value)
        elif isinstance(mutation, WriteMemory):
            self.ram.write(mutation.address, mutation.value)
        elif isinstance(mutation, Halt):
            self.state = self.state.set_halted(True)
        else:
            raise TypeError(f"Unknown mutation: {mutation!r}")

    def run(self) -> None:
        """Run until halted.

        Raises:
            CPUError: The first fault; the run stops there
        """
        while not self.state.halted:
            self.step()

    def run_with_debug(
        self,
        on_before_step: Optional[StepCallback] = None,
        on_after_step: Optional[StepCallback] = None,
    ) -> None:
        """Run until halted, calling observers around every step.

        ``on_after_step`` is not called for a step that faults.
        """
        while not self.state.halted:
            if on_before_step is not None:
                on_before_step(self)
            self.step()
            if on_after_step is not None:
                on_after_step(self)

    # =========================================================================
    # Accessors
    # =========================================================================

    def read_register(self, reg: RegisterRef) -> Byte:
        return self.state.get_register(reg)

    get_register = read_register

    def dump_registers(self) -> dict:
        return self.state.dump_registers()

    @property
    def instruction_pointer(self) -> Byte:
        return self.state.ip

    @property
    def stack_pointer(self) -> Byte:
        return self.state.get_register(Register.SP)

    def is_halted(self) -> bool:
        return self.state.halted

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def __str__(self) -> str:
        return str(self.state)
