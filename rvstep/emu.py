"""
rvstep — Machine (execution engine)

Owns one program and one machine state and runs the first against the
second. This is the only place instruction semantics live: Instructions
are plain records (program.py) and each mnemonic maps to one handler in
the dispatch table built by _build_dispatch().

Execution model (one step):
  1. If pc does not index an instruction → halt with HALT
  2. Breakpoint at pc → halt with BREAK (the next step runs it)
  3. Dispatch the instruction → update registers / memory / pc
  4. pc += 1. Jumps already subtracted 1 so the net move is their offset
  5. Notify observers with a Snapshot

Termination reasons:
  - HALT:     pc ran off the program
  - STOPPED:  stop() was called, or a newer run() took over the machine
  - BREAK:    breakpoint index reached
  - FAULT:    runtime fault (division by zero, bad memory address)
  - INVALID:  the loaded program has compile errors; it never runs
  - TIMEOUT:  run limit reached (the machine itself keeps running)
  - RELOADED: run() noticed the program was reloaded under it

STOPPED and BREAK are pauses: stepping or running again resumes.

run() is a coroutine that awaits between steps, so stop(), reload() and
snapshot() interleave with it on the same event loop. Each reload bumps
a generation counter; a run loop that sees a different generation than
the one it started with returns without touching the new state.

Only one run loop drives the machine at a time. Every run() entry and
every stop() bumps a run token; a loop holding an older token returns
STOPPED before its next step.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from . import alu
from .alu import MachineFault
from .assembler import AssemblerError, assemble
from .memory import MEMORY_WORDS, Memory
from .program import Instruction, Program
from .regs import Registers

logger = logging.getLogger(__name__)


class StopReason(Enum):
    HALT = 'HALT'
    STOPPED = 'STOPPED'
    BREAK = 'BREAK'
    FAULT = 'FAULT'
    INVALID = 'INVALID'
    TIMEOUT = 'TIMEOUT'
    RELOADED = 'RELOADED'


# Halts that step()/run() may resume from.
PAUSED = (StopReason.STOPPED, StopReason.BREAK)


class UnresolvedJumpFault(MachineFault):
    """A label jump whose target was never resolved."""


class IllegalInstruction(MachineFault):
    """Mnemonic with no handler."""


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the machine handed to observers."""
    pc: int
    registers: Tuple[int, ...]
    halted: bool
    stop_reason: Optional[StopReason]
    steps: int


Observer = Callable[[Snapshot], None]


class Machine:
    """Stepwise interpreter for rvstep programs.

    Usage:
        m = Machine("addi x5, x0, 10\\naddi x5, x5, 5")
        m.step(); m.step()
        m.regs[5]            # 15
        m.step()             # StopReason.HALT

        # cooperative run on an event loop
        reason = await m.run()
    """

    DEFAULT_MAX_STEPS = 1_000_000
    DEFAULT_DELAY = 0.001
    TRACE_LIMIT = 10_000       # trace lines kept; older ones are dropped

    def __init__(self, source: str = "", memory_words: int = MEMORY_WORDS,
                 trace_limit: int = TRACE_LIMIT):
        self._memory_words = memory_words
        self._source = ""
        self._generation = 0
        self._run_token = 0

        self._observers: List[Observer] = []
        self._breakpoints: Set[int] = set()
        self._skip_break: Optional[int] = None

        self._trace = False
        self._trace_output: Deque[str] = deque(maxlen=trace_limit)

        self._dispatch = self._build_dispatch()

        self.program = Program()
        self.regs = Registers()
        self.mem = Memory(memory_words)
        self.pc = 0
        self.steps = 0
        self.halted = False
        self.stop_reason: Optional[StopReason] = None
        self.fault: Optional[str] = None

        self.load(source)

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    @property
    def source(self) -> str:
        return self._source

    @property
    def generation(self) -> int:
        return self._generation

    def load(self, source: str, strict: bool = False) -> Program:
        """Compile source and replace the program and machine state.

        A program with compile errors is loaded halted (INVALID) and never
        executes. With strict=True such a program raises AssemblerError
        instead and the current state is left untouched.
        """
        program = assemble(source)
        if strict and not program.ok:
            raise AssemblerError(program.errors)

        self._source = source
        self._generation += 1
        self.program = program
        self.regs = Registers()
        self.mem = Memory(self._memory_words)
        self.pc = 0
        self.steps = 0
        self.fault = None
        self._skip_break = None
        self._trace_output.clear()

        if program.ok:
            self.halted = False
            self.stop_reason = None
            logger.info("Loaded %d instructions (generation %d)",
                        len(program), self._generation)
        else:
            self.halted = True
            self.stop_reason = StopReason.INVALID
            logger.info("Program has %d errors; execution blocked",
                        len(program.errors))

        self._notify()
        return program

    def reload(self, source: Optional[str] = None) -> Program:
        """Recompile from source (default: the current source) and reset."""
        return self.load(self._source if source is None else source)

    def output(self) -> str:
        """Listing of the loaded program, or its errors."""
        return self.program.output()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if halted, else None."""
        if self.halted:
            if self.stop_reason not in PAUSED:
                return self.stop_reason
            self._resume()

        pc = self.pc
        if not 0 <= pc < len(self.program):
            return self._halt(StopReason.HALT)

        if pc in self._breakpoints and self._skip_break != pc:
            return self._halt(StopReason.BREAK)
        self._skip_break = None

        instr = self.program[pc]
        try:
            self._execute(instr)
        except MachineFault as e:
            self.fault = str(e)
            logger.warning("Fault at pc=%d (%s): %s", pc, instr.text, e)
            return self._halt(StopReason.FAULT)

        self.pc += 1
        self.steps += 1

        if self._trace:
            line = f"{pc:5d}: {instr.text:<28s} -> pc={self.pc}"
            self._trace_output.append(line)
            logger.debug(line)

        self._notify()
        return None

    def run_steps(self, max_steps: Optional[int] = None) -> StopReason:
        """Run synchronously until halted or max_steps instructions ran."""
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS

        self._resume()
        for _ in range(max_steps):
            if self.halted:
                return self.stop_reason
            self.step()

        if self.halted:
            return self.stop_reason
        return StopReason.TIMEOUT

    async def run(self, delay: Optional[float] = None,
                  max_steps: Optional[int] = None) -> StopReason:
        """Run until halted, yielding to the event loop between steps.

        Args:
            delay: seconds to sleep between steps (default DEFAULT_DELAY)
            max_steps: step limit → TIMEOUT; None runs until halted

        Returns:
            StopReason, RELOADED if the program was reloaded meanwhile, or
            STOPPED if stop() or a newer run() took over
        """
        if delay is None:
            delay = self.DEFAULT_DELAY

        generation = self._generation
        self._run_token += 1
        token = self._run_token
        self._resume()
        steps = 0

        while True:
            if generation != self._generation:
                logger.debug("Run loop of generation %d superseded", generation)
                return StopReason.RELOADED
            if token != self._run_token:
                logger.debug("Run loop %d superseded", token)
                return StopReason.STOPPED
            if self.halted:
                return self.stop_reason
            if max_steps is not None and steps >= max_steps:
                return StopReason.TIMEOUT

            self.step()
            steps += 1
            await asyncio.sleep(delay)

    def start(self, delay: Optional[float] = None,
              max_steps: Optional[int] = None) -> 'asyncio.Task':
        """Schedule run() on the running event loop and return its task."""
        return asyncio.get_running_loop().create_task(self.run(delay, max_steps))

    async def reload_and_run(self, source: Optional[str] = None,
                             delay: Optional[float] = None,
                             max_steps: Optional[int] = None) -> StopReason:
        self.reload(source)
        return await self.run(delay, max_steps)

    def stop(self):
        """Request a stop. Observed before the next step executes."""
        self._run_token += 1
        if not self.halted:
            self._halt(StopReason.STOPPED)

    def snapshot(self) -> Snapshot:
        return Snapshot(self.pc, self.regs.values(), self.halted,
                        self.stop_reason, self.steps)

    def _halt(self, reason: StopReason) -> StopReason:
        self.halted = True
        self.stop_reason = reason
        logger.info("Halted: %s at pc=%d after %d steps", reason.value, self.pc, self.steps)
        self._notify()
        return reason

    def _resume(self):
        """Leave a STOPPED/BREAK pause. Other halts are final until reload."""
        if not self.halted or self.stop_reason not in PAUSED:
            return
        if self.stop_reason is StopReason.BREAK:
            self._skip_break = self.pc
        self.halted = False
        self.stop_reason = None

    # ══════════════════════════════════════════════
    # Instruction execution
    # ══════════════════════════════════════════════

    def _execute(self, instr: Instruction):
        handler = self._dispatch.get(instr.op)
        if handler is None:
            raise IllegalInstruction(f"Instruction {instr.op} not implemented")
        handler(instr)

    def _build_dispatch(self) -> Dict[str, Callable[[Instruction], None]]:
        """Build mnemonic → handler dispatch table."""
        dispatch: Dict[str, Callable[[Instruction], None]] = {}
        for name in alu.ARITHMETIC:
            dispatch[name] = self._op_register
        for name in alu.IMMEDIATE:
            dispatch[name] = self._op_immediate
        dispatch.update({
            'jalr': self._op_jalr,
            'lw':   self._op_lw,
            'sw':   self._op_sw,
            'jal':  self._op_jal,
        })
        return dispatch

    # ── Arithmetic handlers ──

    def _op_register(self, instr: Instruction):
        rd, rs1, rs2 = instr.operands
        self.regs[rd] = alu.lookup(instr.op)(self.regs[rs1], self.regs[rs2])

    def _op_immediate(self, instr: Instruction):
        rd, rs1, imm = instr.operands
        self.regs[rd] = alu.lookup(instr.op)(self.regs[rs1], imm)

    # ── Memory handlers ──

    def _op_lw(self, instr: Instruction):
        rd, rs1, imm = instr.operands
        self.regs[rd] = self.mem.read(self.regs[rs1] + imm)

    def _op_sw(self, instr: Instruction):
        rs2, imm, rs1 = instr.operands
        self.mem.write(self.regs[rs1] + imm, self.regs[rs2])

    # ── Jump handlers ──
    # pc is incremented after every handler, so jumps subtract one.

    def _op_jal(self, instr: Instruction):
        rd, offset = instr.operands
        if offset is None:
            raise UnresolvedJumpFault(f"Unresolved label '{instr.label}'")
        self.regs[rd] = self.pc + 1
        self.pc += offset - 1

    def _op_jalr(self, instr: Instruction):
        rd, rs1, imm = instr.operands
        base = self.regs[rs1]
        self.regs[rd] = self.pc + 1
        self.pc += base + imm - 1

    # ══════════════════════════════════════════════
    # Observers
    # ══════════════════════════════════════════════

    def add_observer(self, callback: Observer):
        """Call callback(Snapshot) after every step, halt and load."""
        self._observers.append(callback)

    def remove_observer(self, callback: Observer):
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self):
        if not self._observers:
            return
        snap = self.snapshot()
        for callback in list(self._observers):
            callback(snap)

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, index: int):
        """Halt with BREAK before the instruction at index executes."""
        self._breakpoints.add(index)

    def remove_breakpoint(self, index: int):
        self._breakpoints.discard(index)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable instruction trace logging."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def display(self) -> str:
        """Register table plus run status."""
        if self.halted:
            status = self.stop_reason.value
        else:
            status = 'RUNNING'
        return f"{self.regs.display(self.pc)}\n[{status}] steps={self.steps}"
