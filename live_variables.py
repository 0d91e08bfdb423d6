from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

import cfg
import report
from cfg import MalformedCFGError
from dfa import AnalysisResult, DataFlowAnalysis, Trace
from ir import BasicBlock, Constant, Function, Variable, fmt, union

logger = logging.getLogger(__name__)


def compute_gen_kill(block: BasicBlock) -> Tuple[FrozenSet[Variable], FrozenSet[Variable]]:
    """Returns (use, def) for one block.

    Works at block granularity: every non-constant operand of a
    non-terminator counts as a use, even if the block defined it earlier.
    Terminator operands (a branch condition, a returned value) are skipped
    entirely, which under-approximates liveness at block exits. That gap is
    kept on purpose so results stay comparable with the established output.
    """
    use, defs = set(), set()
    for ins in block.instrs:
        if ins.is_terminator:
            continue
        for op in ins.operands:
            if not isinstance(op, Constant):
                use.add(op)
        if ins.result is not None and not isinstance(ins.result, Constant):
            defs.add(ins.result)
    return frozenset(use), frozenset(defs)


class LiveVariables(DataFlowAnalysis):
    def __init__(self, trace: Optional[Trace] = None):
        super().__init__(trace)
        self.use_dict: Dict[str, FrozenSet[Variable]] = {}
        self.def_dict: Dict[str, FrozenSet[Variable]] = {}

    def prepare(self, fn: Function) -> None:
        for b in fn.blocks:
            self.use_dict[b.name], self.def_dict[b.name] = compute_gen_kill(b)
        self.emit("gen_kill", {
            "function": fn.name,
            "use": dict(self.use_dict),
            "def": dict(self.def_dict),
        })

    def merge(self, values: List[Set[Variable]]) -> Set[Variable]:
        return union(values)

    def transfer(self, block: BasicBlock, out_set: Set[Variable]) -> Set[Variable]:
        return set(self.use_dict[block.name]) | (out_set - self.def_dict[block.name])

    def solve(self, fn: Function, order: str = 'reverse') -> AnalysisResult:
        result = super().solve(fn, order)
        result.use = dict(self.use_dict)
        result.defs = dict(self.def_dict)
        return result


def analyze(fn: Function, order: str = 'reverse', trace: Optional[Trace] = None) -> AnalysisResult:
    return LiveVariables(trace).solve(fn, order)


def log_trace(event: str, payload: Dict[str, Any]) -> None:
    if event == "gen_kill":
        for name in payload["use"]:
            logger.debug("%s/%s: use %s def %s", payload["function"], name,
                         fmt(payload["use"][name]), fmt(payload["def"][name]))
    elif event == "sweep":
        logger.debug("%s: sweep %d %s", payload["function"], payload["sweep"],
                     "changed" if payload["changed"] else "converged")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bril-liveness",
        description="Block-level live variable analysis for Bril programs.")
    parser.add_argument("paths", nargs="*", default=["-"],
                        help="Bril programs (.json, or .bril through bril2json); '-' reads JSON from stdin")
    parser.add_argument("--order", choices=cfg.ORDERS, default="reverse",
                        help="block visiting order within a sweep")
    parser.add_argument("--format", choices=("text", "json"), default="text")
    parser.add_argument("--show-gen-kill", action="store_true",
                        help="also print each block's use/def sets")
    parser.add_argument("--function", default=None, help="only analyze this function")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    trace = log_trace if args.verbose else None

    reports = []
    for path in args.paths:
        try:
            prog = cfg.load_program(path)
        except (OSError, ValueError, subprocess.CalledProcessError) as e:
            print(f"{path}: cannot load program: {e}", file=sys.stderr)
            return 1

        for func in prog.get("functions", []):
            if args.function is not None and func.get("name") != args.function:
                continue
            try:
                fn = cfg.build_function(func)
                result = analyze(fn, args.order, trace)
            except MalformedCFGError as e:
                print(f"{path}: {e}", file=sys.stderr)
                return 1

            if args.format == "json":
                reports.append(report.json_report(fn, result))
            else:
                print(report.text_report(fn, result, show_gen_kill=args.show_gen_kill))

    if args.format == "json":
        json.dump(reports, sys.stdout, indent=2)
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
