# Copyright (c) 2025
# License: MIT License
#
# This file contains the core implementation of the Graham residue table
# (NumPy buffer, numba JIT kernels).
"""
graham_toolkit.py - Residues of Graham's Number for Every Modulus Below N

Graham's number G is a power tower of 3s, far taller than the totient chain
of any 32-bit modulus. So G mod i can be computed with Euler's theorem
applied recursively, and the whole table G mod i for i in [0, N) can be
built in one forward pass.

CORE PRINCIPLE:
    One uint32 buffer of N cells. Before index n is processed:

        i < n                           buf[i] = G mod i
        n <= i < 3n, i % 3 == 0         buf[i] = a, with a*3^k = 3^(k-1) mod i/3
                                        for all large k (transitional value)
        any other i >= n                buf[i] = totient(i)

    So the table takes 4N bytes and nothing else is allocated.

USAGE:
    from graham_toolkit import graham_table

    table = graham_table(1001)
    print(table[1000])      # 387, the last three digits of Graham's number
"""

import os

import numpy as np
from numba import njit


#==============================================================================
# CONSTANTS
#==============================================================================

DEFAULT_EXP = 30
MAX_TABLE_SIZE = 2 ** 32          # every cell must fit in a uint32
DEFAULT_OUTPUT = "graham_mod_n"

TABLE_DTYPE = np.uint32


#==============================================================================
# MODULAR POWER
#==============================================================================

@njit(cache=True)
def modexp(base, exponent, modulus):
    """
    Calculate (base ^ exponent) % modulus by repeated squaring.

    O(log exponent) time. Works in uint64, so the product of two residues
    below a 32-bit modulus never overflows.

    modexp(3, 0, 7) = 1
    modexp(3, 0, 1) = 0
    modexp(3, 4, 7) = 4 because 81 = 11 * 7 + 4
    """
    assert modulus >= 1
    one = np.uint64(1)
    m = np.uint64(modulus)
    b = np.uint64(base) % m
    e = np.uint64(exponent)
    out = one % m
    while e:
        if e & one:
            out = (out * b) % m
        b = (b * b) % m
        e >>= one
    return out


#==============================================================================
# TOTIENT SIEVE
#==============================================================================

@njit(cache=True)
def totient_table(n):
    """
    Euler's totient of every integer in [0, n), in one uint32 array.

    out[i] starts at i. When the scan reaches p and out[p] is still p, no
    smaller prime divides p, so p is prime: every multiple of p loses the
    factor (1 - 1/p) exactly once.

    O(n log log n) time, 4n + O(1) bytes.
    """
    out = np.empty(n, dtype=np.uint32)
    for i in range(n):
        out[i] = i

    for p in range(2, n):
        if out[p] == p:
            out[p] -= 1
            for i in range(2 * p, n, p):
                out[i] -= out[i] // p
    return out


#==============================================================================
# GRAHAM RESIDUE TABLE
#==============================================================================

@njit(cache=True)
def seed_buffer(buf):
    """Set the two cells the scan needs before it starts at n = 2."""
    if len(buf) > 1:
        buf[1] = 0      # G % 1 == 0
    if len(buf) > 3:
        buf[3] = 0      # 0 * 3^k = 3^(k-1) mod 1, for every k


@njit(cache=True)
def graham_step(buf, n, max_n):
    """
    Finalize buf[n] = G % n, and prepare buf[3n] if it is inside the table.

    Requires buf[0:n] finalized and buf[n] holding either totient(n) or, for
    n divisible by 3, its transitional value.
    """
    three = np.uint64(3)
    if n % 3 == 0:
        # a * 3^k = 3^(k-1) mod (n/3), for large k
        a = np.uint64(buf[n])
        q = n // 3
        g_mod_q = np.uint64(buf[q])

        # G % n = 3 * ((G/3) % (n/3)) = 3 * ((a * G) % (n/3))
        buf[n] = three * ((a * g_mod_q) % np.uint64(q))

        if 3 * n < max_n:
            # (a * 3^k) % n = 3 * ((a * 3^(k-1)) % (n/3)) = 3^(k-1) % n
            buf[3 * n] = a
    else:
        # G = 3^G2, and 3^totient(n) = 1 mod n, so G % n = 3^(G2 % totient(n)) % n
        totient_n = np.int64(buf[n])
        assert totient_n >= 1
        buf[n] = modexp(3, buf[totient_n], n)

        if 3 * n < max_n:
            # 3^(totient(n) - 1) is the inverse of 3 mod n
            buf[3 * n] = modexp(3, totient_n - 1, n)


@njit(cache=True)
def _graham_table(max_n):
    buf = totient_table(max_n)
    seed_buffer(buf)
    for n in range(2, max_n):
        graham_step(buf, n, max_n)
    return buf


def graham_table(n: int) -> np.ndarray:
    """
    Table of Graham's number mod i, for every i in [0, n).

    Executes in O(n log n) time and 4n + O(1) bytes. Index 0 holds 0 and
    has no meaning.

    Args:
        n: Table size, 0 <= n <= 2^32

    Returns:
        uint32 array with table[i] = G % i
    """
    n = int(n)
    if n < 0 or n > MAX_TABLE_SIZE:
        raise ValueError(f"table size must be in [0, 2^32], got {n}")
    return _graham_table(n)


def graham_residue(i: int) -> int:
    """G % i, by building the smallest table that contains i."""
    if i < 1:
        raise ValueError(f"modulus must be positive, got {i}")
    return int(graham_table(i + 1)[i])


#==============================================================================
# TABLE FILE
#==============================================================================

def write_table(table: np.ndarray, path: str) -> int:
    """
    Write the table as raw native-order uint32 values, no header.

    The bytes go to a temporary file next to path, which is then renamed
    over path. Returns the number of bytes written.
    """
    table = np.ascontiguousarray(table, dtype=TABLE_DTYPE)
    tmp_path = f"{path}.tmp"
    try:
        table.tofile(tmp_path)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return table.nbytes


def read_table(path: str) -> np.ndarray:
    """Load a table written by write_table."""
    size = os.path.getsize(path)
    if size % np.dtype(TABLE_DTYPE).itemsize:
        raise ValueError(f"{path}: size {size} is not a multiple of 4 bytes")
    return np.fromfile(path, dtype=TABLE_DTYPE)


#==============================================================================
# MODULE EXPORTS
#==============================================================================

__all__ = [
    # Constants
    'DEFAULT_EXP',
    'MAX_TABLE_SIZE',
    'DEFAULT_OUTPUT',
    'TABLE_DTYPE',

    # Kernels
    'modexp',
    'totient_table',
    'seed_buffer',
    'graham_step',

    # Table
    'graham_table',
    'graham_residue',

    # File
    'write_table',
    'read_table',
]
