# Copyright (c) 2025
# License: MIT License
#
# This file contains the pure-Python reference implementation used to
# validate the JIT kernels in graham_toolkit.py.
"""
graham_reference.py - Slow, Obviously Correct Counterparts

Every function here works on Python integers only and is meant for small
moduli. Nothing in the table build calls into this module.

TALL TOWER ORACLE:
    For x >= log2(m) and any base a:  a^x = a^(x mod phi(m) + phi(m))  (mod m)
    A tower of 3s of height h >= 5 has an exponent far above log2(m) for any
    32-bit m, so

        tower_mod(m, h) = 3^(tower_mod(phi(m), h - 1) + phi(m)) mod m

    The recursion stops at m = 1 after at most ~2*log2(m) levels. Once the
    height exceeds that, the result no longer depends on the height and
    equals G mod m.
"""

from enum import IntEnum
from functools import lru_cache
from typing import List, Optional


#==============================================================================
# CONSTANTS
#==============================================================================

TOWER_HEIGHT = 64       # taller than the totient chain of any 32-bit modulus
TRANSITIONAL_K = 64     # "sufficiently large k" for 3-adic valuations < 2^32

# 3^3^3 = 3^27
SHORT_TOWER_EXPONENT = 3 ** 27

# Exponents of the towers of height 1..4: 3^1, 3^3, 3^27, 3^(3^27)
EXACT_TOWERS = (1, 3, 27, SHORT_TOWER_EXPONENT)


class Regime(IntEnum):
    """Meaning of a buffer cell at a given scan position"""
    RESIDUE = 0         # G mod i, finalized
    TRANSITIONAL = 1    # a with a*3^k = 3^(k-1) mod i/3
    TOTIENT = 2         # totient(i), untouched since the sieve

REGIME_NAMES = ('RESIDUE', 'TRANSITIONAL', 'TOTIENT')


#==============================================================================
# ARITHMETIC
#==============================================================================

@lru_cache(maxsize=None)
def totient(n: int) -> int:
    """
    Euler's totient by trial division.

    totient(1) = 1
    totient(12) = 4 because 1, 5, 7, 11 are coprime to 12
    """
    if n < 1:
        raise ValueError(f"totient is defined for n >= 1, got {n}")
    result = n
    m = n
    p = 2
    while p * p <= m:
        if m % p == 0:
            while m % p == 0:
                m //= p
            result -= result // p
        p += 1
    if m > 1:
        result -= result // m
    return result


def naive_power(base: int, exponent: int, modulus: int) -> int:
    """(base ^ exponent) % modulus by repeated multiplication."""
    result = 1 % modulus
    for _ in range(exponent):
        result = (result * base) % modulus
    return result


def tower_mod(modulus: int, height: int = TOWER_HEIGHT) -> int:
    """
    Residue of a height-`height` power tower of 3s, mod `modulus`.

    Towers up to height 4 use their exact exponent (1, 3, 27 or 3^27). From
    height 5 on the exponent is at least 3^3^3^3, far above log2(modulus),
    so it may be replaced by its residue mod phi(modulus) plus phi(modulus).

    tower_mod(81, 2) = 27 because 3^3 = 27
    """
    if modulus < 1:
        raise ValueError(f"modulus must be positive, got {modulus}")
    if height < 1:
        raise ValueError(f"height must be positive, got {height}")
    if modulus == 1:
        return 0
    if height <= len(EXACT_TOWERS):
        return pow(3, EXACT_TOWERS[height - 1], modulus)
    phi = totient(modulus)
    return pow(3, tower_mod(phi, height - 1) + phi, modulus)


def short_tower_mod(modulus: int) -> int:
    """3^3^3^3 mod `modulus`, evaluated directly."""
    return pow(3, SHORT_TOWER_EXPONENT, modulus)


#==============================================================================
# BUFFER REGIMES
#==============================================================================

def buffer_regime(i: int, n: int) -> Regime:
    """
    Classify cell i when the scan is about to process index n.

    buffer_regime(1, 2) = RESIDUE
    buffer_regime(3, 2) = TRANSITIONAL (seeded before the scan)
    buffer_regime(4, 2) = TOTIENT
    """
    if i < 0:
        raise ValueError(f"index must be non-negative, got {i}")
    if i < n:
        return Regime.RESIDUE
    if i < 3 * n and i % 3 == 0:
        return Regime.TRANSITIONAL
    return Regime.TOTIENT


def transitional_holds(a: int, i: int, k: int = TRANSITIONAL_K) -> bool:
    """True if a*3^k = 3^(k-1) mod i/3, i.e. a is a valid value for cell i."""
    m = i // 3
    return (a * pow(3, k, m)) % m == pow(3, k - 1, m)


def check_invariant(buf, n: int, limit: Optional[int] = None) -> List[int]:
    """
    Verify the scan invariant of `buf` at position n.

    Args:
        buf: Buffer, as left by graham_step for every index below n
        n: Next index the scan will process
        limit: Check only the first `limit` cells

    Returns:
        Indices whose value does not match their regime (empty if all hold)
    """
    size = len(buf) if limit is None else min(limit, len(buf))
    bad = []
    for i in range(1, size):
        value = int(buf[i])
        regime = buffer_regime(i, n)
        if regime == Regime.RESIDUE:
            ok = value == tower_mod(i)
        elif regime == Regime.TRANSITIONAL:
            ok = transitional_holds(value, i)
        else:
            ok = value == totient(i)
        if not ok:
            bad.append(i)
    return bad


#==============================================================================
# MODULE EXPORTS
#==============================================================================

__all__ = [
    # Constants
    'TOWER_HEIGHT',
    'TRANSITIONAL_K',
    'SHORT_TOWER_EXPONENT',
    'EXACT_TOWERS',
    'Regime',
    'REGIME_NAMES',

    # Arithmetic
    'totient',
    'naive_power',
    'tower_mod',
    'short_tower_mod',

    # Buffer regimes
    'buffer_regime',
    'transitional_holds',
    'check_invariant',
]
