#!/usr/bin/env python3
"""Runs the liveness analysis over a corpus of Bril programs and checks the
solution of every function: fixpoint equations, empty exits, no constants,
monotone sweeps and the lattice-height bound on the sweep count.
"""

from __future__ import annotations

import json
import math
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List

from tqdm import tqdm

import cfg
from dfa import AnalysisResult
from ir import Function, Variable, union
from live_variables import analyze


def collect_targets(input_paths: List[str]) -> List[Path]:
    targets: List[Path] = []
    for p in input_paths:
        path = Path(p)
        if path.is_file() and path.suffix in (".bril", ".json"):
            targets.append(path)
        elif path.is_dir():
            for child in path.rglob("*"):
                if child.is_file() and child.suffix in (".bril", ".json"):
                    targets.append(child)
    targets.sort()
    return targets


def geometric_mean(nums: List[float]) -> float:
    if not nums:
        return float("nan")
    return math.exp(sum(math.log(x) for x in nums) / len(nums))


def check_solution(fn: Function, result: AnalysisResult) -> List[str]:
    problems = []
    for b in fn.blocks:
        n = b.name
        expected_out = union(result.live_in[s.name] for s in b.successors)
        if result.live_out[n] != expected_out:
            problems.append(f"{n}: out != union of successor ins")
        if result.live_in[n] != set(result.use[n]) | (result.live_out[n] - result.defs[n]):
            problems.append(f"{n}: in != use | (out - def)")
        if not b.successors and result.live_out[n]:
            problems.append(f"{n}: exit block has a non-empty out set")
        for s in (result.live_in[n], result.live_out[n], result.use[n], result.defs[n]):
            if any(not isinstance(v, Variable) for v in s):
                problems.append(f"{n}: non-variable in a live set")
                break
    return problems


def check_monotone(snapshots: List[Dict[str, Any]]) -> List[str]:
    problems = []
    for prev, cur in zip(snapshots, snapshots[1:]):
        for key in ("live_in", "live_out"):
            for n, s in prev[key].items():
                if not s <= cur[key][n]:
                    problems.append(f"{n}: {key} shrank in sweep {cur['sweep']}")
    return problems


def analyze_function(func: Dict[str, Any], order: str) -> Dict[str, Any]:
    fn = cfg.build_function(func)
    snapshots: List[Dict[str, Any]] = []

    def trace(event, payload):
        if event == "sweep":
            snapshots.append(payload)

    result = analyze(fn, order, trace)
    problems = check_solution(fn, result) + check_monotone(snapshots)

    n_vars = len(fn.variables())
    n_blocks = len(fn.blocks)
    # each non-final sweep grows some in/out set by at least one variable
    bound = 2 * n_vars * n_blocks + 1
    if result.sweeps > max(bound, 1):
        problems.append(f"{result.sweeps} sweeps exceeds lattice height bound {bound}")

    sizes = [len(s) for s in result.live_in.values()]
    return {
        "function": fn.name,
        "blocks": n_blocks,
        "instrs": sum(len(b.instrs) for b in fn.blocks),
        "vars": n_vars,
        "sweeps": result.sweeps,
        "max_live": max(sizes, default=0),
        "mean_live": sum(sizes) / len(sizes) if sizes else 0.0,
        "problems": problems,
    }


def check_file(path: Path, order: str) -> Dict[str, Any]:
    rec: Dict[str, Any] = {"file": str(path), "functions": []}
    try:
        prog = cfg.load_program(str(path))
        for func in prog.get("functions", []):
            rec["functions"].append(analyze_function(func, order))
    except cfg.MalformedCFGError as e:
        rec["verdict"] = f"BAD: malformed program - {e}"
        return rec
    except (OSError, ValueError, subprocess.CalledProcessError) as e:
        rec["verdict"] = f"BAD: cannot load - {e}"
        return rec

    failing = [f for f in rec["functions"] if f["problems"]]
    if failing:
        rec["verdict"] = f"BAD: {len(failing)} function(s) violate liveness properties"
    else:
        rec["verdict"] = "Good!"
    return rec


def eval_results(results: List[Dict[str, Any]]):
    total = len(results)
    good = [r for r in results if r["verdict"] == "Good!"]
    print(f"\nWell-formed solutions: {len(good)}/{total}")

    funcs = [f for r in good for f in r["functions"]]
    if funcs:
        print(f"Functions analyzed: {len(funcs)}")
        print(f"Sweeps per function (GM): {geometric_mean([f['sweeps'] for f in funcs]):.4f}")

        by_sweeps = sorted(funcs, key=lambda f: f["sweeps"], reverse=True)
        print("\nTop 5 slowest to converge:")
        for f in by_sweeps[:5]:
            print(f"  {f['function']}: {f['sweeps']} sweeps ({f['blocks']} blocks, {f['vars']} vars)")

    failures = [r for r in results if r["verdict"] != "Good!"]
    if failures:
        print(f"\nFailures ({len(failures)}):")
        for r in failures[:10]:
            print(f"  {Path(r['file']).name}: {r['verdict']}")
            for f in r["functions"]:
                for p in f["problems"][:3]:
                    print(f"    {f['function']}: {p}")
        if len(failures) > 10:
            print(f"  ... and {len(failures) - 10} more")


def main(argv: List[str]) -> int:
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("paths", nargs="*", default=["tests/programs"])
    parser.add_argument("--out", type=str, default="results_liveness.json")
    parser.add_argument("--order", choices=cfg.ORDERS, default="reverse")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    targets = collect_targets(args.paths)
    if not targets:
        print("No .bril or .json files found.")
        return 1

    print(f"Found {len(targets)} programs")

    results: List[Dict[str, Any]] = []
    for t in tqdm(targets, disable=args.verbose):
        if args.verbose:
            print(f"Processing {t}...")
        results.append(check_file(t, args.order))

    eval_results(results)

    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2)
    print(f"\nWrote detailed results to {args.out}")

    good = sum(1 for r in results if r["verdict"] == "Good!")
    return 0 if good == len(results) else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
