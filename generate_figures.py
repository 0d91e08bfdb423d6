#!/usr/bin/env python3

import argparse
import json
import os
import sys

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np

plt.rcParams.update({
    'font.size': 11,
    'axes.titlesize': 12,
    'axes.labelsize': 11,
    'xtick.labelsize': 9,
    'ytick.labelsize': 10,
    'legend.fontsize': 10,
    'figure.figsize': (10, 6),
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
})

def load_results(filepath="results_liveness.json"):
    with open(filepath) as f:
        return json.load(f)

def geometric_mean(values):
    values = [v for v in values if v > 0]
    if not values:
        return 1.0
    return float(np.exp(np.mean(np.log(values))))

def function_records(results):
    records = []
    for r in results:
        if r.get('verdict') != 'Good!':
            continue
        name = os.path.basename(r['file']).rsplit('.', 1)[0]
        for f in r['functions']:
            records.append(dict(f, label=f"{name}:{f['function']}"))
    return records

def generate_sweeps_histogram(records, output_dir):
    sweeps = [f['sweeps'] for f in records]

    fig, ax = plt.subplots(figsize=(10, 6))

    bins = np.arange(1, max(sweeps) + 2) - 0.5
    ax.hist(sweeps, bins=bins, edgecolor='black', alpha=0.7, color='#3498db')

    gm = geometric_mean(sweeps)
    ax.axvline(x=gm, color='#9b59b6', linestyle='-', linewidth=2,
               label=f'Geometric Mean: {gm:.3f}')

    ax.set_xlabel('Sweeps to Fixpoint (including the confirming sweep)')
    ax.set_ylabel('Number of Functions')
    ax.set_title('Distribution of Sweeps Across All Functions')
    ax.legend()
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    plt.savefig(os.path.join(output_dir, 'sweeps_histogram.png'))
    plt.close()
    print(f"  Saved: sweeps_histogram.png")

def generate_sweeps_vs_blocks_scatter(records, output_dir):
    blocks = np.array([f['blocks'] for f in records])
    sweeps = np.array([f['sweeps'] for f in records])
    bound = np.array([2 * f['vars'] * f['blocks'] + 1 for f in records])

    fig, ax = plt.subplots(figsize=(10, 6))

    ax.scatter(blocks, sweeps, alpha=0.7, color='#27ae60', edgecolors='black', label='Observed')
    ax.scatter(blocks, bound, alpha=0.4, color='#e74c3c', marker='x', label='Lattice height bound')

    ax.set_xlabel('Basic Blocks')
    ax.set_ylabel('Sweeps (log scale)')
    ax.set_yscale('log')
    ax.set_title('Sweeps to Fixpoint vs. Function Size')
    ax.legend()
    ax.grid(alpha=0.3)

    within = int(np.sum(sweeps <= bound))
    ax.text(0.05, 0.95, f'{within}/{len(records)} functions within bound',
            transform=ax.transAxes, ha='left', va='top',
            bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.5))

    plt.tight_layout()
    plt.savefig(os.path.join(output_dir, 'sweeps_vs_blocks_scatter.png'))
    plt.close()
    print(f"  Saved: sweeps_vs_blocks_scatter.png")

def generate_live_size_bar(records, output_dir):
    data = sorted(records, key=lambda f: f['max_live'], reverse=True)[:20]

    fig, ax = plt.subplots(figsize=(12, 8))

    names = [f['label'] for f in data]
    x = np.arange(len(names))
    width = 0.35

    ax.bar(x - width/2, [f['max_live'] for f in data], width, label='Max live-in', color='#e67e22', alpha=0.8)
    ax.bar(x + width/2, [f['mean_live'] for f in data], width, label='Mean live-in', color='#3498db', alpha=0.8)

    ax.set_xlabel('Function')
    ax.set_ylabel('Live Variables')
    ax.set_title('Top 20 Functions by Live-Set Size')
    ax.set_xticks(x)
    ax.set_xticklabels(names, rotation=45, ha='right')
    ax.legend()
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    plt.savefig(os.path.join(output_dir, 'live_size_bar.png'))
    plt.close()
    print(f"  Saved: live_size_bar.png")

def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--results", default="results_liveness.json")
    parser.add_argument("--out-dir", default="figures")
    args = parser.parse_args(argv)

    results = load_results(args.results)
    records = function_records(results)
    if not records:
        print("No successfully analyzed functions in results.")
        return 1

    output_dir = args.out_dir
    os.makedirs(output_dir, exist_ok=True)

    print(f"Loaded {len(records)} functions from {len(results)} programs")
    print("\nGenerating figures...")
    generate_sweeps_histogram(records, output_dir)
    generate_sweeps_vs_blocks_scatter(records, output_dir)
    generate_live_size_bar(records, output_dir)

    sweeps = [f['sweeps'] for f in records]
    print("\n=== Summary Statistics ===")
    print(f"Sweeps per function (GM):   {geometric_mean(sweeps):.4f}")
    print(f"Max sweeps:                 {max(sweeps)}")
    print(f"Largest live-in set:        {max(f['max_live'] for f in records)}")

    print(f"\nAll figures saved to '{output_dir}/' directory")
    return 0

if __name__ == "__main__":
    sys.exit(main())
