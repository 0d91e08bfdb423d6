from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from cfg import MalformedCFGError, block_order
from ir import BasicBlock, Function, Variable

Trace = Callable[[str, Dict[str, Any]], None]


@dataclass
class AnalysisResult:
    function: str
    live_in: Dict[str, Set[Variable]]
    live_out: Dict[str, Set[Variable]]
    sweeps: int = 0
    use: Dict[str, FrozenSet[Variable]] = field(default_factory=dict)
    defs: Dict[str, FrozenSet[Variable]] = field(default_factory=dict)


class DataFlowAnalysis:
    """Backward dataflow problem solved by round-robin sweeps.

    Subclasses supply prepare/merge/transfer. One instance owns the in/out maps
    of one run; build a fresh instance per function.
    """

    def __init__(self, trace: Optional[Trace] = None) -> None:
        self.trace = trace

    def prepare(self, fn: Function) -> None:
        return None

    def merge(self, values: List[Set[Variable]]) -> Set[Variable]:
        raise NotImplementedError

    def transfer(self, block: BasicBlock, out_set: Set[Variable]) -> Set[Variable]:
        raise NotImplementedError

    def initial_in(self, block: BasicBlock) -> Set[Variable]:
        return set()

    def initial_out(self, block: BasicBlock) -> Set[Variable]:
        return set()

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.trace is not None:
            self.trace(event, payload)

    @staticmethod
    def check_successors(fn: Function) -> None:
        owned = {id(b) for b in fn.blocks}
        for b in fn.blocks:
            for s in b.successors:
                if id(s) not in owned:
                    raise MalformedCFGError(f"successor {s.name!r} is not a block of this function",
                                            func=fn.name, block=b.name)

    def solve(self, fn: Function, order: str = 'reverse') -> AnalysisResult:
        self.check_successors(fn)
        self.prepare(fn)
        blocks = block_order(fn, order)

        in_dict = {b.name: set(self.initial_in(b)) for b in fn.blocks}
        out_dict = {b.name: set(self.initial_out(b)) for b in fn.blocks}

        sweeps = 0
        changed = True
        while changed:
            changed = False
            sweeps += 1
            for b in blocks:
                new_out = self.merge([in_dict[s.name] for s in b.successors])
                new_in = self.transfer(b, new_out)
                if new_out != out_dict[b.name] or new_in != in_dict[b.name]:
                    changed = True
                    out_dict[b.name] = new_out
                    in_dict[b.name] = new_in
            self.emit("sweep", {
                "function": fn.name,
                "sweep": sweeps,
                "changed": changed,
                "live_in": {n: frozenset(s) for n, s in in_dict.items()},
                "live_out": {n: frozenset(s) for n, s in out_dict.items()},
            })

        return AnalysisResult(fn.name, in_dict, out_dict, sweeps)
