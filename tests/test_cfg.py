import io
import json
import subprocess

import pytest

import cfg
from cfg import MalformedCFGError
from ir import Constant, Variable

from conftest import load_function, load_json


def names(blocks):
    return [b.name for b in blocks]


def test_blocks_and_successors_of_loop():
    fn = load_function("loop.json")
    assert names(fn.blocks) == ["B0", "loop", "body", "done"]
    assert fn.next_map() == {
        "B0": ["loop"],
        "loop": ["body", "done"],
        "body": ["loop"],
        "done": [],
    }
    assert fn.entry.name == "B0"


def test_leading_label_gets_empty_entry_block():
    fn = load_function("self_loop.json")
    assert names(fn.blocks) == ["B0", "loop"]
    assert fn.blocks[0].instrs == []
    assert fn.next_map() == {"B0": ["loop"], "loop": ["loop"]}


def test_empty_labelled_block_falls_through():
    fn = load_function("diamond.json")
    by_name = fn.block_map()
    assert by_name["join"].instrs == []
    assert names(by_name["join"].successors) == ["tail"]
    assert names(by_name["right"].successors) == ["join"]
    assert by_name["dead"].successors == []


def test_synthetic_names_skip_existing_labels():
    blocks = cfg.form_blocks([
        {"label": "B0"},
        {"op": "jmp", "labels": ["B0"]},
    ])
    assert [b["name"] for b in blocks] == ["B1", "B0"]


def test_instruction_conversion():
    fn = load_function("loop.json")
    n_const, _, _ = fn.blocks[0].instrs
    assert n_const.operands == (Constant(10),)
    assert n_const.result == Variable("n")
    assert not n_const.is_terminator

    cond, br = fn.block_map()["loop"].instrs
    assert cond.operands == (Variable("i"), Variable("n"))
    assert br.is_terminator
    assert br.operands == (Variable("cond"),)
    assert br.result is None


def test_call_targets_are_not_operands():
    fn = load_function("calls.json")
    call = fn.blocks[0].instrs[1]
    assert call.op == "call"
    assert call.operands == (Variable("a"),)


def test_dangling_label_is_rejected():
    func = {"name": "f", "instrs": [{"op": "jmp", "labels": ["nowhere"]}]}
    with pytest.raises(MalformedCFGError) as e:
        cfg.build_function(func)
    assert "nowhere" in str(e.value)
    assert e.value.func == "f"
    assert e.value.block == "B0"


def test_duplicate_label_is_rejected():
    func = {"name": "f", "instrs": [{"label": "a"}, {"label": "a"}]}
    with pytest.raises(MalformedCFGError, match="duplicate label"):
        cfg.build_function(func)


@pytest.mark.parametrize("instr, message", [
    ({"dest": "x", "op": "add", "args": ["a", 3]}, "neither a variable nor a constant"),
    ({"dest": "x", "op": "const", "type": "int"}, "const without a value"),
    ({"dest": 7, "op": "id", "args": ["a"]}, "not a variable name"),
    ({"dest": "x", "args": ["a"]}, "without an opcode"),
])
def test_unclassifiable_instructions_are_rejected(instr, message):
    func = {"name": "f", "instrs": [instr]}
    with pytest.raises(MalformedCFGError, match=message) as e:
        cfg.build_function(func)
    assert e.value.instr == instr


def test_block_orders():
    fn = load_function("diamond.json")
    assert names(cfg.block_order(fn, "program")) == ["B0", "left", "right", "join", "tail", "dead"]
    assert names(cfg.block_order(fn, "reverse")) == ["dead", "tail", "join", "right", "left", "B0"]
    post = names(cfg.block_order(fn, "postorder"))
    assert post == ["tail", "join", "left", "right", "B0", "dead"]


def test_postorder_on_cycle_visits_every_block_once():
    fn = load_function("loop.json")
    post = names(cfg.postorder(fn))
    assert sorted(post) == sorted(names(fn.blocks))
    assert post[-1] == "B0"


def test_unknown_order():
    fn = load_function("straight.json")
    with pytest.raises(ValueError, match="unknown block order"):
        cfg.block_order(fn, "random")


def test_invert_next_to_prev():
    fn = load_function("loop.json")
    assert cfg.invert_next_to_prev(fn.blocks) == {
        "B0": [],
        "loop": ["B0", "body"],
        "body": ["loop"],
        "done": ["loop"],
    }


def test_load_program_json(programs_dir):
    prog = cfg.load_program(str(programs_dir / "calls.json"))
    assert [f["name"] for f in prog["functions"]] == ["main", "double"]


def test_load_program_stdin(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(load_json("straight.json"))))
    prog = cfg.load_program("-")
    assert prog["functions"][0]["name"] == "main"


def test_load_program_bril_text_goes_through_bril2json(tmp_path, monkeypatch):
    src = tmp_path / "prog.bril"
    src.write_text("@main {\n  ret;\n}\n")
    calls = []

    def fake_check_output(cmd, stdin=None, text=None):
        calls.append(cmd)
        return json.dumps({"functions": [{"name": "main", "instrs": [{"op": "ret", "args": []}]}]})

    monkeypatch.setattr(subprocess, "check_output", fake_check_output)
    prog = cfg.load_program(str(src))
    assert calls == [["bril2json"]]
    assert prog["functions"][0]["instrs"] == [{"op": "ret", "args": []}]
