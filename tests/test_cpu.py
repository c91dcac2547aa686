"""Tests for the CPU execution cycle, faults and program loading."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from cpuem import (
    CPU,
    CPUError,
    Halt,
    InvalidArgument,
    InvalidOpcode,
    Opcode,
    Register,
    WriteRegister,
    encode,
    get_parser,
)


def program(*instructions):
    data = []
    for instruction in instructions:
        data.extend(instruction)
    return data


class TestStep:
    """Test a single fetch-decode-execute step."""

    @pytest.fixture
    def cpu(self):
        return CPU()

    def test_num_sets_register_and_advances_ip(self, cpu):
        """NUM writes the constant and moves IP past three bytes."""
        cpu.fill_ram(encode(Opcode.NUM, Register.C, 0x42))
        mutations = cpu.step()
        assert mutations == [WriteRegister(Register.C, 0x42)]
        assert cpu.read_register(Register.C) == 0x42
        assert cpu.instruction_pointer == 3
        assert cpu.get_cycle_count() == 1

    @pytest.mark.parametrize("value", range(256))
    def test_num_then_read(self, cpu, value):
        """Reading a register after NUM yields the constant."""
        cpu.fill_ram(encode(Opcode.NUM, Register.A, value))
        cpu.step()
        assert cpu.read_register(Register.A) == value

    def test_mov_leaves_source(self, cpu):
        """MOV never changes the source register."""
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.B, 9),
            encode(Opcode.MOV, Register.A, Register.B),
        ))
        cpu.step()
        cpu.step()
        assert cpu.read_register(Register.A) == 9
        assert cpu.read_register(Register.B) == 9

    @pytest.mark.parametrize("a,b", [(0, 0), (200, 100), (255, 1), (1, 2), (128, 255)])
    def test_add_sub_wrap(self, a, b):
        """ADD/SUB produce (a+b) and (a-b) modulo 256."""
        add_cpu = CPU()
        add_cpu.fill_ram(program(
            encode(Opcode.NUM, Register.A, a),
            encode(Opcode.NUM, Register.B, b),
            encode(Opcode.ADD, Register.A, Register.B),
            encode(Opcode.HLT),
        ))
        add_cpu.run()
        assert add_cpu.read_register(Register.A) == (a + b) % 256

        sub_cpu = CPU()
        sub_cpu.fill_ram(program(
            encode(Opcode.NUM, Register.A, a),
            encode(Opcode.NUM, Register.B, b),
            encode(Opcode.SUB, Register.A, Register.B),
            encode(Opcode.HLT),
        ))
        sub_cpu.run()
        assert sub_cpu.read_register(Register.A) == (a - b) % 256

    def test_add_register_to_itself(self, cpu):
        """ADD A, A doubles A using the pre-step value."""
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.A, 0x81),
            encode(Opcode.ADD, Register.A, Register.A),
        ))
        cpu.step()
        cpu.step()
        assert cpu.read_register(Register.A) == 0x02

    def test_hlt_advances_and_halts(self, cpu):
        """HLT moves IP past itself and sets halted."""
        cpu.fill_ram(encode(Opcode.HLT))
        assert cpu.step() == [Halt()]
        assert cpu.is_halted() is True
        assert cpu.instruction_pointer == 1

    def test_step_on_halted_cpu_raises(self, cpu):
        """A halted CPU refuses to step."""
        cpu.fill_ram(encode(Opcode.HLT))
        cpu.step()
        with pytest.raises(RuntimeError):
            cpu.step()

    def test_ip_wraps_at_end_of_memory(self, cpu):
        """An instruction ending at 0xff leaves IP at 0x00."""
        cpu.ram.write(0xFD, Opcode.NUM)
        cpu.ram.write(0xFE, Register.A.value)
        cpu.ram.write(0xFF, 0x11)
        cpu.state = cpu.state.set_ip(0xFD)
        cpu.step()
        assert cpu.read_register(Register.A) == 0x11
        assert cpu.instruction_pointer == 0


class TestInstructionPointerCommit:
    """IP is committed before the instruction's own mutations."""

    def test_mov_ip_overrides_advance(self):
        """MOV IP, A jumps to A rather than falling through."""
        cpu = CPU()
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.A, 7),          # 0
            encode(Opcode.MOV, Register.IP, Register.A),  # 3
            encode(Opcode.HLT),                           # 6 (skipped)
            encode(Opcode.NUM, Register.B, 99),           # 7
            encode(Opcode.HLT),                           # 10
        ))
        cpu.run()
        assert cpu.read_register(Register.B) == 99
        assert cpu.instruction_pointer == 11

    def test_mov_from_ip_sees_pre_step_value(self):
        """MOV A, IP reads IP from the snapshot, before the advance."""
        cpu = CPU()
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.B, 0),
            encode(Opcode.MOV, Register.A, Register.IP),
        ))
        cpu.step()
        cpu.step()
        assert cpu.read_register(Register.A) == 3
        assert cpu.instruction_pointer == 6

    def test_add_ip_uses_committed_base_for_write(self):
        """ADD IP, B computes from the pre-step IP and overwrites the advance."""
        cpu = CPU()
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.B, 10),   # 0
            encode(Opcode.ADD, Register.IP, Register.B),  # 3 -> IP = 3 + 10
        ))
        cpu.step()
        cpu.step()
        assert cpu.instruction_pointer == 13


class TestFaults:
    """Test the InvalidOpcode / InvalidArgument fault model."""

    def test_invalid_opcode(self):
        """An unknown opcode faults with its address and byte."""
        cpu = CPU()
        cpu.fill_ram(program(encode(Opcode.NUM, Register.A, 1), [0x99]))
        with pytest.raises(InvalidOpcode) as excinfo:
            cpu.run()
        assert excinfo.value.address == 3
        assert excinfo.value.opcode == 0x99
        assert isinstance(excinfo.value, CPUError)

    def test_invalid_opcode_leaves_state(self):
        """A faulted step changes nothing."""
        cpu = CPU()
        cpu.fill_ram([0x99])
        before = cpu.state
        memory_before = cpu.ram.dump()
        with pytest.raises(InvalidOpcode):
            cpu.step()
        assert cpu.state == before
        assert cpu.ram.dump() == memory_before
        assert cpu.is_halted() is False

    def test_invalid_argument(self):
        """Register operand 0x05 faults with the name and pre-step IP."""
        cpu = CPU()
        cpu.fill_ram(program(encode(Opcode.NUM, Register.A, 1), [0x01, 0x00, 0x05]))
        cpu.step()
        before = cpu.state
        with pytest.raises(InvalidArgument) as excinfo:
            cpu.step()
        assert excinfo.value.instruction == "MOV"
        assert excinfo.value.address == 3
        assert cpu.state == before
        assert cpu.instruction_pointer == 3

    def test_invalid_argument_in_second_operand_of_set(self):
        """SET's register operand is validated; the constant never fails."""
        cpu = CPU()
        cpu.fill_ram([0x30, 0x05, 0x05])
        with pytest.raises(InvalidArgument) as excinfo:
            cpu.step()
        assert excinfo.value.instruction == "SET"
        assert excinfo.value.address == 0

    def test_fault_message(self):
        """Faults render their fields."""
        assert str(InvalidOpcode(0x10, 0x99)) == "Invalid opcode 0x99 at 0x10"
        assert str(InvalidArgument("ADD", 0x02)) == "Invalid argument for ADD at 0x02"

    def test_invalid_opcode_reports_fetched_byte(self):
        """The fault carries the byte that was fetched, not a second read."""
        served = iter([0x99, 0x42])
        cpu = CPU(input_mapping=lambda adr: next(served) if adr == 0 else None)
        with pytest.raises(InvalidOpcode) as excinfo:
            cpu.step()
        assert excinfo.value.opcode == 0x99
        assert str(excinfo.value) == "Invalid opcode 0x99 at 0x00"
        assert next(served) == 0x42


class TestRun:
    """Test run and run_with_debug."""

    def test_run_on_halted_cpu_returns(self):
        """run() on an already halted CPU does nothing."""
        cpu = CPU()
        cpu.fill_ram(encode(Opcode.HLT))
        cpu.run()
        cycles = cpu.get_cycle_count()
        cpu.run()
        assert cpu.get_cycle_count() == cycles

    def test_run_with_debug_observers(self):
        """Observers are called around every step in order."""
        cpu = CPU()
        cpu.fill_ram(program(encode(Opcode.NUM, Register.A, 1), encode(Opcode.HLT)))
        events = []
        cpu.run_with_debug(
            lambda c: events.append(("before", int(c.instruction_pointer))),
            lambda c: events.append(("after", int(c.instruction_pointer))),
        )
        assert events == [("before", 0), ("after", 3), ("before", 3), ("after", 4)]
        assert cpu.read_register(Register.A) == 1

    def test_run_with_debug_without_observers(self):
        """Observers are optional."""
        cpu = CPU()
        cpu.fill_ram(encode(Opcode.HLT))
        cpu.run_with_debug()
        assert cpu.is_halted()

    def test_run_with_debug_fault_skips_after(self):
        """A faulting step raises before on_after_step."""
        cpu = CPU()
        cpu.fill_ram([0x99])
        after = []
        with pytest.raises(InvalidOpcode):
            cpu.run_with_debug(None, after.append)
        assert after == []


class TestFillRam:
    """Test bulk program loading."""

    def test_full_image(self):
        """256 bytes land at addresses 0..255 in order."""
        cpu = CPU()
        cpu.fill_ram(range(256))
        assert cpu.ram.dump() == list(range(256))

    def test_too_long(self):
        """257 bytes is a usage error and nothing is written."""
        cpu = CPU()
        with pytest.raises(ValueError):
            cpu.fill_ram([0xFF] * 257)
        assert cpu.ram.dump() == [0] * 256

    def test_out_of_range_value(self):
        """Values outside 0..255 are rejected before writing."""
        cpu = CPU()
        with pytest.raises(ValueError):
            cpu.fill_ram([1, 2, 300])
        assert cpu.ram.dump() == [0] * 256

    def test_accepts_bytes(self):
        """A bytes object loads directly."""
        cpu = CPU()
        cpu.fill_ram(b"\x00\x01\xff")
        assert cpu.ram.dump()[:3] == [0x00, 0x01, 0xFF]

    def test_load_goes_through_output_hook(self):
        """Load-time writes to a consumed address don't reach storage."""
        seen = []

        def output(adr, value):
            if adr == 1:
                seen.append((adr, value))
                return True
            return None

        cpu = CPU(output_mapping=output)
        cpu.fill_ram([0xAA, 0xBB, 0xCC])
        assert seen == [(1, 0xBB)]
        assert cpu.ram.dump()[:3] == [0xAA, 0x00, 0xCC]


class TestConstruction:
    """Test CPU construction and accessors."""

    def test_defaults(self):
        """Registers start at zero except SP."""
        cpu = CPU()
        assert cpu.dump_registers() == {"A": 0, "B": 0, "C": 0, "D": 0, "IP": 0, "SP": 0xD0}
        assert cpu.stack_pointer == 0xD0
        assert cpu.is_halted() is False

    def test_instances_are_independent(self):
        """Two CPUs share no memory or registers."""
        first, second = CPU(), CPU()
        first.fill_ram(program(encode(Opcode.NUM, Register.A, 5), encode(Opcode.HLT)))
        first.run()
        assert second.read_register(Register.A) == 0
        assert second.ram.dump() == [0] * 256

    def test_with_device(self):
        """A device object supplies both hooks."""

        class Port:
            def __init__(self):
                self.written = []

            def read(self, adr):
                return 0x21 if adr == 0x90 else None

            def write(self, adr, value):
                if adr == 0x90:
                    self.written.append(int(value))
                    return True
                return None

        port = Port()
        cpu = CPU.with_device(port)
        cpu.fill_ram(program(
            encode(Opcode.NUM, Register.D, 0x44),
            encode(Opcode.SET, 0x90, Register.D),
            encode(Opcode.HLT),
        ))
        cpu.run()
        assert port.written == [0x44]
        assert cpu.ram.read(0x90) == 0x21
        assert cpu.ram.peek(0x90) == 0

    def test_str(self):
        """str(cpu) shows the register file."""
        assert str(CPU()) == "<CPU A=0 B=0 C=0 D=0 IP=0 SP=208 halted=false>"

    def test_instruction_set_is_fixed(self):
        """A CPU cannot be built with a different opcode table."""
        with pytest.raises(TypeError):
            CPU(instruction_parser=object())
        assert CPU().instruction_parser is get_parser()

    def test_last_step(self):
        """last_step describes the most recent committed step."""
        cpu = CPU()
        assert cpu.last_step is None
        cpu.fill_ram(program(encode(Opcode.NUM, Register.B, 7), [0x99]))
        mutations = cpu.step()
        assert cpu.last_step.address == 0
        assert cpu.last_step.instruction.name == "NUM"
        assert [str(arg) for arg in cpu.last_step.args] == ["B", "0x07"]
        assert cpu.last_step.mutations == mutations
        with pytest.raises(InvalidOpcode):
            cpu.step()
        assert cpu.last_step.address == 0
