from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union


@dataclass(frozen=True)
class Variable:
    """A value that can be live. Bril variables are named per function."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Constant:
    value: Any

    def __str__(self) -> str:
        return repr(self.value)


Operand = Union[Variable, Constant]
VarSet = Set[Variable]


@dataclass(frozen=True)
class Instruction:
    op: str
    operands: Tuple[Operand, ...] = ()
    result: Optional[Operand] = None
    is_terminator: bool = False

    def __str__(self) -> str:
        rhs = " ".join([self.op, *map(str, self.operands)])
        if self.result is None:
            return rhs
        return f"{self.result} = {rhs}"


# eq=False keeps identity semantics so blocks can be dict keys and are never copied
@dataclass(eq=False)
class BasicBlock:
    name: str
    instrs: List[Instruction] = field(default_factory=list)
    successors: List["BasicBlock"] = field(default_factory=list)

    def __repr__(self) -> str:
        succs = ", ".join(s.name for s in self.successors)
        return f"BasicBlock({self.name!r}, instrs={len(self.instrs)}, succs=[{succs}])"


@dataclass(eq=False)
class Function:
    name: str
    blocks: List[BasicBlock] = field(default_factory=list)

    @property
    def entry(self) -> Optional[BasicBlock]:
        return self.blocks[0] if self.blocks else None

    def block_map(self) -> Dict[str, BasicBlock]:
        return {b.name: b for b in self.blocks}

    def next_map(self) -> Dict[str, List[str]]:
        return {b.name: [s.name for s in b.successors] for b in self.blocks}

    def variables(self) -> FrozenSet[Variable]:
        """Every variable mentioned as an operand or result anywhere."""
        found: Set[Variable] = set()
        for b in self.blocks:
            for ins in b.instrs:
                found.update(op for op in ins.operands if isinstance(op, Variable))
                if isinstance(ins.result, Variable):
                    found.add(ins.result)
        return frozenset(found)


def union(sets: Iterable[Iterable[Variable]]) -> VarSet:
    result: VarSet = set()
    for s in sets:
        result |= set(s)
    return result


def fmt(s: Iterable[Variable]) -> str:
    names = sorted(map(str, s))
    return "{" + ", ".join(names) + "}" if names else "{}"
