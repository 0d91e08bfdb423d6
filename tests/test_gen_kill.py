from ir import BasicBlock, Constant, Instruction, Variable
from live_variables import compute_gen_kill

from conftest import load_function, v


def test_single_add():
    b = BasicBlock("B", [Instruction("add", (Variable("a"), Variable("b")), Variable("x"))])
    use, defs = compute_gen_kill(b)
    assert use == v("a", "b")
    assert defs == v("x")


def test_use_after_local_def_still_counts_as_use():
    b = BasicBlock("B", [
        Instruction("const", (Constant(1),), Variable("t")),
        Instruction("add", (Variable("t"), Variable("t")), Variable("u")),
    ])
    use, defs = compute_gen_kill(b)
    assert use == v("t")
    assert defs == v("t", "u")


def test_constants_never_enter_either_set():
    b = BasicBlock("B", [
        Instruction("add", (Variable("y"), Constant(1)), Variable("y")),
        Instruction("weird", (Constant(2),), Constant(3)),
    ])
    use, defs = compute_gen_kill(b)
    assert use == v("y")
    assert defs == v("y")


def test_terminator_operands_are_ignored():
    fn = load_function("loop.json")
    use, defs = compute_gen_kill(fn.block_map()["loop"])
    # `cond` feeds the branch only
    assert use == v("i", "n")
    assert defs == v("cond")


def test_effect_only_instruction_defines_nothing():
    fn = load_function("loop.json")
    use, defs = compute_gen_kill(fn.block_map()["done"])
    assert use == v("i")
    assert defs == set()


def test_empty_block():
    use, defs = compute_gen_kill(BasicBlock("empty"))
    assert use == set()
    assert defs == set()


def test_sets_are_immutable():
    b = BasicBlock("B", [Instruction("id", (Variable("a"),), Variable("b"))])
    use, defs = compute_gen_kill(b)
    assert isinstance(use, frozenset)
    assert isinstance(defs, frozenset)
