import json
from pathlib import Path

import pytest

import cfg
from ir import BasicBlock, Constant, Function, Instruction, Variable

PROGRAMS = Path(__file__).parent / "programs"


def load_json(name):
    with open(PROGRAMS / name, encoding="utf-8") as f:
        return json.load(f)


def load_function(name, func="main"):
    prog = load_json(name)
    for f in prog["functions"]:
        if f["name"] == func:
            return cfg.build_function(f)
    raise KeyError(func)


def v(*names):
    return {Variable(n) for n in names}


@pytest.fixture
def programs_dir():
    return PROGRAMS


@pytest.fixture
def self_loop_fn():
    """`y = add y, 1` in a block that jumps back to itself."""
    b = BasicBlock("B", [
        Instruction("add", (Variable("y"), Constant(1)), Variable("y")),
        Instruction("jmp", (), None, is_terminator=True),
    ])
    b.successors = [b]
    return Function("loop", [b])
