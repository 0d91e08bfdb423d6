from __future__ import annotations

from typing import Any, Dict, Iterable, List

from dfa import AnalysisResult
from ir import Function, Variable


def _lines(s: Iterable[Variable]) -> List[str]:
    return sorted(map(str, s))


def text_report(fn: Function, result: AnalysisResult, show_gen_kill: bool = False) -> str:
    """Per block: name, instruction count, then one live variable per line."""
    out = [f"{fn.name}:"]
    for b in fn.blocks:
        n = b.name
        if show_gen_kill:
            out.append(f"Def set for basic block {n}")
            out.extend(_lines(result.defs.get(n, ())))
            out.append(f"Use set for basic block {n}")
            out.extend(_lines(result.use.get(n, ())))
            out.append("")
        out.append(f"Live in set for basic block {n} with #instructions = {len(b.instrs)}")
        out.extend(_lines(result.live_in[n]))
        out.append("")
        out.append(f"Live out set for basic block {n}")
        out.extend(_lines(result.live_out[n]))
        out.append("-" * 33)
    return "\n".join(out)


def json_report(fn: Function, result: AnalysisResult) -> Dict[str, Any]:
    blocks = {}
    for b in fn.blocks:
        blocks[b.name] = {
            "instrs": len(b.instrs),
            "in": _lines(result.live_in[b.name]),
            "out": _lines(result.live_out[b.name]),
        }
    return {"function": fn.name, "sweeps": result.sweeps, "blocks": blocks}
