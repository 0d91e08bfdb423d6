from __future__ import annotations

import json
import subprocess
import sys
from typing import Any, Dict, List, Optional

from ir import BasicBlock, Constant, Function, Instruction, Operand, Variable

TERMINATORS = ('jmp', 'br', 'ret')
ORDERS = ('reverse', 'program', 'postorder')


class MalformedCFGError(ValueError):
    """Raised when a function violates the IR provider's contract."""

    def __init__(self, message: str, func: Optional[str] = None,
                 block: Optional[str] = None, instr: Any = None):
        where = []
        if func is not None:
            where.append(f"function {func!r}")
        if block is not None:
            where.append(f"block {block!r}")
        if instr is not None:
            where.append(f"instruction {json.dumps(instr, sort_keys=True)}")
        super().__init__(f"{message} ({', '.join(where)})" if where else message)
        self.func = func
        self.block = block
        self.instr = instr


def _fresh_name(state, taken):
    while True:
        name = f"B{state['next_id']}"
        state['next_id'] += 1
        if name not in taken:
            return name


def yield_block(state, blocks, taken):
    if not state['instrs'] and state['label'] is None:
        return
    name = state['label'] if state['label'] is not None else _fresh_name(state, taken)
    blocks.append({"name": name, "label": state['label'], "instrs": state['instrs']})
    state['label'] = None
    state['instrs'] = []


def form_blocks(instrs, func_name=None):
    labels = [i['label'] for i in instrs if 'label' in i]
    seen = set()
    for label in labels:
        if label in seen:
            raise MalformedCFGError(f"duplicate label {label!r}", func=func_name)
        seen.add(label)

    blocks = []
    state = {'label': None, 'instrs': [], 'next_id': 0}

    # a leading label could be a jump target; keep the entry block free of predecessors
    if instrs and 'label' in instrs[0]:
        blocks.append({"name": _fresh_name(state, seen), "label": None, "instrs": []})

    for i in instrs:
        if 'label' in i:
            yield_block(state, blocks, seen)
            state['label'] = i['label']
        else:
            state['instrs'].append(i)
            if i.get('op') in TERMINATORS:
                yield_block(state, blocks, seen)
    yield_block(state, blocks, seen)
    return blocks


def form_cfg(blocks, func_name=None):
    label_to_block = {b["label"]: b["name"] for b in blocks if b["label"] is not None}
    cfg = {b["name"]: [] for b in blocks}

    def target(b, label):
        if label not in label_to_block:
            raise MalformedCFGError(f"jump to unknown label {label!r}",
                                    func=func_name, block=b["name"], instr=b["instrs"][-1])
        return label_to_block[label]

    for idx, b in enumerate(blocks):
        if not b["instrs"]:
            if idx+1 < len(blocks):
                cfg[b["name"]].append(blocks[idx+1]["name"])
            continue
        last_i = b["instrs"][-1]
        op = last_i.get("op")
        if op in ("jmp", "br"):
            for target_label in last_i.get("labels", []):
                name = target(b, target_label)
                if name not in cfg[b["name"]]:
                    cfg[b["name"]].append(name)
        elif op != "ret" and idx+1 < len(blocks):
            cfg[b["name"]].append(blocks[idx+1]["name"])
    return cfg


def convert_instr(ins: Dict[str, Any], func_name: str, block_name: str) -> Instruction:
    op = ins.get("op")
    if not isinstance(op, str):
        raise MalformedCFGError("instruction without an opcode",
                                func=func_name, block=block_name, instr=ins)

    operands: List[Operand] = []
    if op == "const":
        if "value" not in ins:
            raise MalformedCFGError("const without a value",
                                    func=func_name, block=block_name, instr=ins)
        operands.append(Constant(ins["value"]))
    for a in ins.get("args", []):
        if not isinstance(a, str):
            raise MalformedCFGError(f"operand {a!r} is neither a variable nor a constant",
                                    func=func_name, block=block_name, instr=ins)
        operands.append(Variable(a))

    result = None
    if "dest" in ins:
        if not isinstance(ins["dest"], str):
            raise MalformedCFGError(f"result {ins['dest']!r} is not a variable name",
                                    func=func_name, block=block_name, instr=ins)
        result = Variable(ins["dest"])

    return Instruction(op, tuple(operands), result, op in TERMINATORS)


def build_function(func: Dict[str, Any]) -> Function:
    """Bril function (JSON form) -> Function with linked successor blocks."""
    name = func.get("name", "<anonymous>")
    blocks = form_blocks(func.get("instrs", []), name)
    next_map = form_cfg(blocks, name)

    fn = Function(name)
    by_name = {}
    for b in blocks:
        bb = BasicBlock(b["name"], [convert_instr(i, name, b["name"]) for i in b["instrs"]])
        by_name[bb.name] = bb
        fn.blocks.append(bb)
    for bb in fn.blocks:
        bb.successors = [by_name[s] for s in next_map[bb.name]]
    return fn


def invert_next_to_prev(blocks: List[BasicBlock]) -> Dict[str, List[str]]:
    prev_map: Dict[str, List[str]] = {b.name: [] for b in blocks}
    for b in blocks:
        for s in b.successors:
            if b.name not in prev_map[s.name]:
                prev_map[s.name].append(b.name)
    return prev_map


def postorder(fn: Function) -> List[BasicBlock]:
    """DFS postorder from the entry; unreachable blocks follow in reverse program order."""
    seen, post = set(), []
    if fn.entry is not None:
        # iterative so deep straight-line functions don't hit the recursion limit
        stack = [(fn.entry, iter(fn.entry.successors))]
        seen.add(fn.entry.name)
        while stack:
            node, succs = stack[-1]
            for s in succs:
                if s.name not in seen:
                    seen.add(s.name)
                    stack.append((s, iter(s.successors)))
                    break
            else:
                stack.pop()
                post.append(node)
    post.extend(b for b in reversed(fn.blocks) if b.name not in seen)
    return post


def block_order(fn: Function, order: str = 'reverse') -> List[BasicBlock]:
    if order == 'reverse':
        return list(reversed(fn.blocks))
    if order == 'program':
        return list(fn.blocks)
    if order == 'postorder':
        return postorder(fn)
    raise ValueError(f"unknown block order {order!r}; expected one of {ORDERS}")


def bril_txt_to_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        json_str = subprocess.check_output(["bril2json"], stdin=f, text=True)
    return json.loads(json_str)


def load_program(path: str) -> dict:
    if path == "-":
        return json.load(sys.stdin)
    if path.endswith(".bril"):
        return bril_txt_to_json(path)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
