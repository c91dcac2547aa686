"""Execution audit trail built on ``CPU.run_with_debug`` observers.

    recorder = TraceRecorder()
    cpu.run_with_debug(recorder.before_step, recorder.after_step)
    for entry in recorder.entries: ...

Recording never changes what the CPU does. ``before_step`` only snapshots
state; the decoded instruction and its mutations are taken from
``CPU.last_step`` once the step has committed, so memory and input hooks
are read exactly as often as in an untraced run.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .cpu import CPU
from .instruction import Mutation, WriteMemory


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        instruction: Mnemonic of the executed instruction
        arguments: Decoded operands, rendered as text
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
        mutations: Mutations the step applied, in order
    """
    cycle: int
    address: int
    instruction: str
    arguments: List[str]
    pre_state: dict
    post_state: dict
    mutations: List[Mutation] = field(default_factory=list)

    @property
    def memory_writes(self) -> List[Tuple[int, int]]:
        """(address, value) pairs written during the step."""
        return [
            (int(m.address), int(m.value)) for m in self.mutations if isinstance(m, WriteMemory)
        ]

    def changes(self) -> List[str]:
        """Register deltas between pre and post state, e.g. ``A: 0 -> 1``."""
        pre_regs = self.pre_state["registers"]
        post_regs = self.post_state["registers"]
        return [
            f"{reg}: {pre_regs[reg]} -> {post_regs[reg]}"
            for reg in pre_regs
            if pre_regs[reg] != post_regs[reg]
        ]

    def __str__(self) -> str:
        args = ", ".join(self.arguments)
        text = f"[Cycle {self.cycle}] 0x{self.address:02x}: {self.instruction} {args}".rstrip()
        changes = self.changes()
        if changes:
            text += f"  ({', '.join(changes)})"
        return text


class TraceRecorder:
    """Collects an ExecutionTraceEntry for every committed step.

    Attributes:
        entries: Recorded trace, oldest first
    """

    def __init__(self):
        self.entries: List[ExecutionTraceEntry] = []
        self._pending: Optional[Tuple[int, dict]] = None

    def before_step(self, cpu: CPU) -> None:
        self._pending = (cpu.get_cycle_count(), cpu.state.snapshot())

    def after_step(self, cpu: CPU) -> None:
        if self._pending is None or cpu.last_step is None:
            return
        cycle, pre_state = self._pending
        self._pending = None
        step = cpu.last_step
        self.entries.append(ExecutionTraceEntry(
            cycle=cycle,
            address=int(step.address),
            instruction=step.instruction.name,
            arguments=[str(arg) for arg in step.args],
            pre_state=pre_state,
            post_state=cpu.state.snapshot(),
            mutations=list(step.mutations),
        ))

    def __len__(self) -> int:
        return len(self.entries)
