#!/usr/bin/env python3
# Copyright (c) 2025
# License: MIT License
#
# This file contains the command-line entry point and the validation suite
# for the Graham residue table.
"""
graham_table.py - Build, Inspect and Verify the Graham Residue Table

Writes G mod i for every i in [0, N) as N raw uint32 values (native byte
order, no header). The value at byte offset 4*i is G mod i.

Usage:
    python3 graham_table.py                      # 2^30 cells -> graham_mod_n (4 GiB)
    python3 graham_table.py --exp 20 -o table    # 2^20 cells -> table
    python3 graham_table.py --show 10 100 1000   # print single residues
    python3 graham_table.py --verify table       # check a written table
    python3 graham_table.py --test               # run validation tests
    python3 graham_table.py --plot --size 2000   # scatter plot of G mod i
"""

import argparse
import sys
import time
from typing import List, Optional

from graham_toolkit import (
    DEFAULT_EXP, DEFAULT_OUTPUT, MAX_TABLE_SIZE,
    modexp, totient_table, seed_buffer, graham_step, graham_table,
    write_table, read_table,
)
from graham_reference import (
    totient, naive_power, tower_mod, short_tower_mod,
    transitional_holds, check_invariant,
)

# Known last digits of Graham's number: ...2464195387
KNOWN_RESIDUES = {
    10: 7,
    100: 87,
    1000: 387,
}


# ============================================================
# VALIDATION TESTS
# ============================================================

def _report(failures: int, total: int) -> bool:
    if failures == 0:
        print(f"  ✓ All {total} tests passed!")
        return True
    print(f"  ✗ {failures} failures out of {total} tests")
    return False


def test_totient_table(max_n: int = 1000) -> bool:
    """Sieve totients equal trial-division totients for 1..max_n-1."""
    print(f"Testing totient sieve against trial division for n < {max_n}...")

    table = totient_table(max_n)
    failures = 0
    for n in range(1, max_n):
        expected = totient(n)
        if table[n] != expected:
            if failures < 5:
                print(f"  FAIL at n={n}: sieve={table[n]} expected={expected}")
            failures += 1
    return _report(failures, max_n - 1)


def test_modexp(max_base: int = 8, max_exponent: int = 10, max_modulus: int = 16) -> bool:
    """modexp equals repeated multiplication on all small triples."""
    print("Testing modexp against repeated multiplication...")

    failures = 0
    total = 0
    for m in range(1, max_modulus + 1):
        for b in range(max_base + 1):
            for e in range(max_exponent + 1):
                total += 1
                got = modexp(b, e, m)
                expected = naive_power(b, e, m)
                if got != expected:
                    if failures < 5:
                        print(f"  FAIL: modexp({b}, {e}, {m}) = {got}, expected {expected}")
                    failures += 1
    return _report(failures, total)


def test_against_oracle(max_n: int = 1000) -> bool:
    """Every cell equals the tall-tower oracle, and the known digits match."""
    print(f"Testing table against tall-tower oracle for i < {max_n}...")

    size = max(max_n, max(KNOWN_RESIDUES) + 1)
    table = graham_table(size)
    failures = 0
    for i in range(1, max_n):
        expected = tower_mod(i)
        if table[i] != expected:
            if failures < 5:
                print(f"  FAIL at i={i}: table={table[i]} oracle={expected}")
            failures += 1
    for i, expected in KNOWN_RESIDUES.items():
        if table[i] != expected:
            print(f"  FAIL: G mod {i} = {table[i]}, known value {expected}")
            failures += 1
    return _report(failures, max_n - 1 + len(KNOWN_RESIDUES))


def test_short_tower(max_n: int = 10) -> bool:
    """For tiny moduli the table already equals 3^3^3^3 mod i."""
    print(f"Testing table against 3^3^3^3 for i < {max_n}...")

    table = graham_table(max_n)
    failures = 0
    for i in range(1, max_n):
        expected = short_tower_mod(i)
        if table[i] != expected:
            print(f"  FAIL at i={i}: table={table[i]} 3^3^3^3={expected}")
            failures += 1
    return _report(failures, max_n - 1)


def test_truncation(sizes: Optional[List[int]] = None) -> bool:
    """G mod i does not depend on the size of the table that holds it."""
    if sizes is None:
        # 19, 55 and 172: floor(N/3) is a multiple of 3 and 3*floor(N/3) < N
        sizes = [4, 10, 19, 20, 55, 100, 172, 500]
    print(f"Testing stability under truncation for sizes {sizes}...")

    largest = graham_table(max(sizes))
    failures = 0
    for size in sizes:
        table = graham_table(size)
        if not (table[1:] == largest[1:size]).all():
            print(f"  FAIL: table({size}) differs from prefix of table({max(sizes)})")
            failures += 1
    return _report(failures, len(sizes))


def test_invariant(max_n: int = 200) -> bool:
    """Step the scan by hand and check the three-regime invariant at every n."""
    print(f"Testing buffer invariant at every scan position for N = {max_n}...")

    buf = totient_table(max_n)
    seed_buffer(buf)
    failures = 0
    for n in range(2, max_n):
        bad = check_invariant(buf, n)
        if bad:
            if failures < 5:
                print(f"  FAIL before n={n}: cells {bad[:5]}")
            failures += 1
        graham_step(buf, n, max_n)
        if n % 3 and 3 * n < max_n and not transitional_holds(int(buf[3 * n]), 3 * n):
            if failures < 5:
                print(f"  FAIL after n={n}: buf[{3 * n}] = {buf[3 * n]} is not transitional")
            failures += 1
    if check_invariant(buf, max_n):
        print("  FAIL: finished buffer is not the residue table")
        failures += 1
    return _report(failures, max_n - 1)


def run_all_tests(max_n: int = 1000) -> bool:
    """Run all validation tests."""
    print("=" * 60)
    print("RUNNING ALL TESTS")
    print("=" * 60)

    results = []
    results.append(("Totient sieve", test_totient_table(max_n)))
    results.append(("Modular power", test_modexp()))
    results.append(("Tall-tower oracle", test_against_oracle(max_n)))
    results.append(("Short tower", test_short_tower()))
    results.append(("Truncation", test_truncation()))
    results.append(("Buffer invariant", test_invariant(min(max_n, 200))))

    print("\n" + "=" * 60)
    print("TEST SUMMARY")
    print("=" * 60)

    all_passed = True
    for name, passed in results:
        status = "✓ PASS" if passed else "✗ FAIL"
        print(f"  {name}: {status}")
        if not passed:
            all_passed = False

    print("=" * 60)
    return all_passed


# ============================================================
# COMMANDS
# ============================================================

def build(size: int, output: str) -> None:
    """Build the table and write it to `output`."""
    print(f"Building table of G mod i for i < {size:,} "
          f"({4 * size / 2**20:,.1f} MiB)...", file=sys.stderr)

    start = time.perf_counter()
    table = graham_table(size)
    elapsed = time.perf_counter() - start
    print(f"  Computed in {elapsed:.2f}s", file=sys.stderr)

    nbytes = write_table(table, output)
    print(f"  Wrote {nbytes:,} bytes to {output}", file=sys.stderr)


def show(indices: List[int]) -> None:
    """Print G mod i for each requested i."""
    if min(indices) < 1:
        raise ValueError("indices must be positive")
    table = graham_table(max(indices) + 1)
    for i in indices:
        print(f"  G mod {i} = {table[i]}")


def verify(path: str, limit: int = 1000) -> bool:
    """Compare the first `limit` cells of a table file with the oracle."""
    table = read_table(path)
    count = min(limit, len(table))
    print(f"Verifying {path}: {len(table):,} cells, checking i < {count}...")
    if count < 2:
        print(f"  ✗ Nothing to check: {path} holds no residue cells")
        return False

    failures = 0
    for i in range(1, count):
        expected = tower_mod(i)
        if table[i] != expected:
            if failures < 5:
                print(f"  FAIL at i={i}: file={table[i]} oracle={expected}")
            failures += 1
    return _report(failures, max(count - 1, 0))


def plot_residues(size: int, save_path: Optional[str] = None):
    """
    Scatter plot of G mod i against i.

    Args:
        size: Plot i < size
        save_path: Optional path to save figure
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        print("matplotlib not installed. Run: pip install matplotlib")
        return

    print(f"Generating residue plot for i < {size}...")

    table = graham_table(size)
    xs = list(range(1, size))
    ys = [int(table[i]) for i in xs]
    colors = [i % 3 for i in xs]

    fig, ax = plt.subplots(figsize=(12, 8))
    scatter = ax.scatter(xs, ys, c=colors, cmap='viridis', s=2, alpha=0.7)
    plt.colorbar(scatter, label='i mod 3')

    ax.plot(xs, xs, linewidth=0.5, alpha=0.3)
    ax.set_xlabel('Modulus i')
    ax.set_ylabel('G mod i')
    ax.set_title(f"Graham's number mod i, i = 1 to {size - 1}")
    ax.grid(True, alpha=0.3)

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved to {save_path}")

    plt.show()


# ============================================================
# MAIN
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Table of Graham's number mod i for every i below N",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # 2^30 cells -> graham_mod_n
  %(prog)s --exp 20 -o table        # 2^20 cells -> table
  %(prog)s --show 10 100 1000       # print G mod 10, 100, 1000
  %(prog)s --verify table           # check a written table
  %(prog)s --test                   # run validation tests
        """
    )

    parser.add_argument('--exp', type=int, default=DEFAULT_EXP,
                        help=f'Build N = 2^exp cells (default: {DEFAULT_EXP})')
    parser.add_argument('--size', type=int, default=None,
                        help='Build exactly N cells (overrides --exp)')
    parser.add_argument('--output', '-o', default=DEFAULT_OUTPUT,
                        help=f'Output file (default: {DEFAULT_OUTPUT})')
    parser.add_argument('--show', type=int, nargs='+', metavar='I',
                        help='Print G mod I for each I')
    parser.add_argument('--verify', metavar='FILE',
                        help='Check a table file against the oracle')
    parser.add_argument('--limit', type=int, default=1000,
                        help='Cells to check with --verify (default: 1000)')
    parser.add_argument('--test', action='store_true',
                        help='Run validation tests')
    parser.add_argument('--plot', action='store_true',
                        help='Plot G mod i (uses --size, default 2000)')
    parser.add_argument('--save', type=str, default=None,
                        help='Save plot to file')

    args = parser.parse_args(argv)

    if args.test:
        return 0 if run_all_tests() else 1

    if args.verify:
        try:
            return 0 if verify(args.verify, args.limit) else 1
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if args.show:
        try:
            show(args.show)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    if args.plot:
        plot_residues(args.size or 2000, save_path=args.save)
        return 0

    if args.size is not None:
        size = args.size
    else:
        if not 2 <= args.exp <= 32:
            parser.error("--exp must be in [2, 32]")
        size = 2 ** args.exp
    if not 0 <= size <= MAX_TABLE_SIZE:
        parser.error("--size must be in [0, 2^32]")

    try:
        build(size, args.output)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
