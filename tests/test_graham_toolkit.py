"""Tests for the Graham residue table kernels, reference oracle and CLI."""

import sys

import numpy as np
import pytest

import graham_table
from graham_reference import (
    Regime, buffer_regime, check_invariant, naive_power, short_tower_mod,
    totient, tower_mod, transitional_holds,
)
from graham_toolkit import (
    MAX_TABLE_SIZE, graham_residue, graham_step, graham_table as build_table,
    modexp, read_table, seed_buffer, totient_table, write_table,
)


# ============================================================
# MODULAR POWER
# ============================================================

def test_modexp_matches_naive_power():
    for m in range(1, 14):
        for b in range(0, 7):
            for e in range(0, 9):
                assert modexp(b, e, m) == naive_power(b, e, m), (b, e, m)


def test_modexp_zero_exponent_is_one_mod_m():
    for m in range(1, 20):
        assert modexp(5, 0, m) == 1 % m
    assert modexp(3, 0, 1) == 0


def test_modexp_large_modulus_does_not_overflow():
    m = 2 ** 32 - 5
    assert modexp(m - 1, 2, m) == 1
    assert modexp(3, 2 ** 31 + 11, m) == pow(3, 2 ** 31 + 11, m)


def test_modexp_zero_modulus_fails():
    with pytest.raises(AssertionError):
        modexp(3, 2, 0)


# ============================================================
# TOTIENT SIEVE
# ============================================================

def test_totient_table_matches_trial_division():
    table = totient_table(1000)
    assert table.dtype == np.uint32
    assert len(table) == 1000
    for n in range(1, 1000):
        assert table[n] == totient(n), n


def test_totient_fixed_points():
    table = totient_table(100)
    assert table[1] == 1
    for p in (2, 3, 5, 7, 11, 13, 97):
        assert table[p] == p - 1


def test_totient_table_tiny_sizes():
    assert len(totient_table(0)) == 0
    assert list(totient_table(2)) == [0, 1]


def test_totient_is_positive_above_one():
    # graham_step subtracts 1 from totient(n) for every n >= 2
    table = totient_table(5000)
    assert (table[2:] >= 1).all()


def test_zero_totient_fails_the_step():
    buf = totient_table(10)
    seed_buffer(buf)
    buf[4] = 0
    with pytest.raises(AssertionError):
        for n in range(2, 10):
            graham_step(buf, n, 10)


def test_reference_totient_rejects_zero():
    with pytest.raises(ValueError):
        totient(0)


# ============================================================
# RESIDUE TABLE
# ============================================================

def test_base_cases():
    table = build_table(50)
    assert table[1] == 0
    assert table[2] == 1
    assert table[3] == 0
    assert table[4] == 3    # any odd power of 3 is 3 mod 4


def test_small_table_matches_short_tower():
    table = build_table(10)
    for i in range(1, 10):
        assert table[i] == short_tower_mod(i), i


def test_table_matches_tall_tower_oracle():
    table = build_table(1000)
    for i in range(1, 1000):
        assert table[i] == tower_mod(i), i


def test_short_towers_use_exact_exponents():
    assert tower_mod(81, 1) == 3
    assert tower_mod(81, 2) == 27
    assert tower_mod(653, 3) == pow(3, 27, 653)
    for m in range(1, 2000):
        assert tower_mod(m, 4) == short_tower_mod(m), m


def test_tall_tower_reduces_to_short_tower_exponent():
    # height 5: 3^(3^3^3^3), exponent reduced mod phi(m) is still exact
    for m in (653, 1306, 1949, 1959):
        phi = totient(m)
        assert tower_mod(m, 5) == pow(3, short_tower_mod(phi) + phi, m)


def test_tower_mod_rejects_zero_height():
    with pytest.raises(ValueError):
        tower_mod(7, 0)


def test_known_last_digits():
    table = build_table(10001)
    assert table[10] == 7
    assert table[100] == 87
    assert table[1000] == 387
    assert table[10000] == 5387


def test_stability_under_truncation():
    largest = build_table(600)
    for size in (2, 3, 4, 10, 19, 20, 28, 55, 172, 599):
        table = build_table(size)
        np.testing.assert_array_equal(table[1:], largest[1:size])


def test_boundary_ahead_write_is_kept():
    # floor(19/3) = 6 and 3*6 < 19, so buf[18] must get its transitional value
    table = build_table(19)
    assert table[18] == tower_mod(18) == 9


def test_graham_residue():
    assert graham_residue(1000) == 387
    with pytest.raises(ValueError):
        graham_residue(0)


@pytest.mark.parametrize("size", [-1, MAX_TABLE_SIZE + 1])
def test_table_size_out_of_range(size):
    with pytest.raises(ValueError):
        build_table(size)


def test_empty_and_trivial_tables():
    assert len(build_table(0)) == 0
    assert list(build_table(2)) == [0, 0]
    assert list(build_table(3)) == [0, 0, 1]


# ============================================================
# BUFFER INVARIANT
# ============================================================

def test_buffer_regime():
    assert buffer_regime(1, 2) == Regime.RESIDUE
    assert buffer_regime(3, 2) == Regime.TRANSITIONAL
    assert buffer_regime(4, 2) == Regime.TOTIENT
    assert buffer_regime(6, 2) == Regime.TOTIENT
    assert buffer_regime(6, 3) == Regime.TRANSITIONAL
    assert buffer_regime(9, 3) == Regime.TOTIENT
    with pytest.raises(ValueError):
        buffer_regime(-1, 2)


def test_transitional_value_written_ahead_of_scan():
    max_n = 150
    buf = totient_table(max_n)
    seed_buffer(buf)
    for n in range(2, max_n):
        graham_step(buf, n, max_n)
        if n % 3 and 3 * n < max_n:
            # cell 3n is still ahead of the scan and must relate to G mod n
            assert transitional_holds(int(buf[3 * n]), 3 * n), n


def test_invariant_holds_at_every_scan_position():
    max_n = 120
    buf = totient_table(max_n)
    seed_buffer(buf)
    for n in range(2, max_n):
        assert check_invariant(buf, n) == [], n
        graham_step(buf, n, max_n)
    assert check_invariant(buf, max_n) == []


def test_check_invariant_reports_corruption():
    buf = build_table(40)
    buf[17] += 1
    assert check_invariant(buf, 40) == [17]


# ============================================================
# TABLE FILE
# ============================================================

def test_write_table_layout(tmp_path):
    path = tmp_path / "graham_mod_n"
    table = build_table(256)

    assert write_table(table, str(path)) == 4 * 256
    raw = path.read_bytes()
    assert len(raw) == 4 * 256
    assert int.from_bytes(raw[4 * 100:4 * 101], sys.byteorder) == 87
    assert not (tmp_path / "graham_mod_n.tmp").exists()
    np.testing.assert_array_equal(read_table(str(path)), table)


def test_read_table_rejects_partial_cells(tmp_path):
    path = tmp_path / "bad"
    path.write_bytes(b"\x00" * 7)
    with pytest.raises(ValueError):
        read_table(str(path))


def test_write_table_missing_directory(tmp_path):
    with pytest.raises(OSError):
        write_table(build_table(8), str(tmp_path / "missing" / "table"))


# ============================================================
# CLI
# ============================================================

def test_cli_build_and_verify(tmp_path, capsys):
    path = tmp_path / "table"
    assert graham_table.main(["--size", "500", "-o", str(path)]) == 0
    assert path.stat().st_size == 4 * 500
    assert graham_table.main(["--verify", str(path), "--limit", "500"]) == 0
    assert "All 499 tests passed" in capsys.readouterr().out


def test_cli_verify_detects_bad_file(tmp_path):
    path = tmp_path / "table"
    table = build_table(64)
    table[10] = 3
    write_table(table, str(path))
    assert graham_table.main(["--verify", str(path)]) == 1


@pytest.mark.parametrize("size", [0, 1])
def test_cli_verify_rejects_file_without_residues(tmp_path, size, capsys):
    path = tmp_path / "table"
    write_table(build_table(size), str(path))
    assert graham_table.main(["--verify", str(path)]) == 1
    assert "Nothing to check" in capsys.readouterr().out


def test_plot_residues_saves_figure(tmp_path):
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = tmp_path / "residues.png"
    graham_table.plot_residues(60, save_path=str(path))
    plt.close("all")
    assert path.stat().st_size > 0


def test_cli_show(capsys):
    assert graham_table.main(["--show", "10", "1000"]) == 0
    out = capsys.readouterr().out
    assert "G mod 10 = 7" in out
    assert "G mod 1000 = 387" in out


def test_cli_show_rejects_zero(capsys):
    assert graham_table.main(["--show", "0"]) == 1
    assert "Error" in capsys.readouterr().err


def test_cli_bad_exp():
    with pytest.raises(SystemExit):
        graham_table.main(["--exp", "40"])


def test_validation_suite_passes():
    assert graham_table.run_all_tests(max_n=300)
