import numpy as np
import pytest

from ctrl_sim.sim_lib.analysis import count_overlaps, measure_dead_times, measure_duty
from ctrl_sim.sim_lib.dead_time import DeadTimeGenerator
from ctrl_sim.sim_lib.params import DeadTimeParams
from ctrl_sim.sim_lib.simulation import simulate_behavioral

FSW = 100e3
TIME_STEP = 1e-9


def run(gen, c, cycles=3):
    return simulate_behavioral(gen, FSW, TIME_STEP, cycles, inputs={'c': c})


# ──────────────────────────────────────────────── Fixtures

@pytest.fixture
def half_duty(square_wave):
    """50 % duty, 100 kHz logic input"""
    return square_wave(FSW, 0.5)


# ──────────────────────────────────────────────── Duty cycles and gaps

def test_half_duty_input_gives_049_each(half_duty):
    res = run(DeadTimeGenerator(), half_duty)
    d1 = measure_duty(res['time'], res['c1'], FSW, cycles_to_analyze=2)
    d2 = measure_duty(res['time'], res['c2'], FSW, cycles_to_analyze=2)
    assert d1 == pytest.approx(0.49, abs=2e-3)
    assert d2 == pytest.approx(0.49, abs=2e-3)


def test_gap_at_each_transition_is_td(half_duty):
    res = run(DeadTimeGenerator(), half_duty)
    gaps = measure_dead_times(res['time'], res['c1'], res['c2'])
    assert gaps.size >= 4
    np.testing.assert_allclose(gaps, 100e-9, rtol=0.05)


def test_outputs_never_overlap(half_duty):
    res = run(DeadTimeGenerator(), half_duty)
    assert count_overlaps(res['c1'], res['c2']) == 0


def test_never_overlap_for_irregular_input():
    rng = np.random.default_rng(42)
    n = int(round(2 / (FSW * TIME_STEP)))
    # Random run lengths between 20 ns and 400 ns
    levels = []
    high = False
    while len(levels) < n:
        levels.extend([5.0 if high else 0.0] * int(rng.integers(20, 400)))
        high = not high
    c = np.asarray(levels[:n])
    res = run(DeadTimeGenerator(), c, cycles=2)
    assert count_overlaps(res['c1'], res['c2']) == 0
    assert np.any(res['c1'] > 2.5)
    assert np.any(res['c2'] > 2.5)


@pytest.mark.parametrize("td", [50e-9, 200e-9])
def test_gap_scales_with_td(half_duty, td):
    res = run(DeadTimeGenerator(DeadTimeParams(Td=td)), half_duty)
    gaps = measure_dead_times(res['time'], res['c1'], res['c2'])
    np.testing.assert_allclose(gaps, td, rtol=0.05)


def test_nominal_duty_cycles():
    gen = DeadTimeGenerator()
    d1, d2 = gen.duty_cycles(0.5, FSW)
    assert d1 == pytest.approx(0.49)
    assert d2 == pytest.approx(0.49)
    assert gen.duty_cycles(0.005, FSW)[0] == 0.0


# ──────────────────────────────────────────────── Edge cases

def test_pulse_shorter_than_td_is_suppressed(square_wave):
    # 50 ns high time against 100 ns dead time
    res = run(DeadTimeGenerator(), square_wave(FSW, 0.005))
    assert np.all(res['c1'] == 0.0)
    assert np.any(res['c2'] == 5.0)


def test_zero_td_passes_signal_with_one_step_lag(half_duty):
    res = run(DeadTimeGenerator(DeadTimeParams(Td=0.0)), half_duty)
    assert count_overlaps(res['c1'], res['c2']) == 0
    d1 = measure_duty(res['time'], res['c1'], FSW, cycles_to_analyze=2)
    assert d1 == pytest.approx(0.5, abs=1e-3)


def test_falling_edge_is_immediate(half_duty):
    res = run(DeadTimeGenerator(), half_duty)
    c = res['c'] > 2.5
    c1 = res['c1'] > 2.5
    # Wherever the input is low, c1 is low in the same sample
    assert not np.any(c1 & ~c)


# ──────────────────────────────────────────────── State

def test_outputs_are_idempotent():
    gen = DeadTimeGenerator()
    for k in range(80):
        gen.update(k * 1e-9, 1e-9, c=5.0)
    a = gen.outputs(80e-9, c=5.0)
    assert a == gen.outputs(80e-9, c=5.0)
    assert a['c1'] == 0.0
    assert 0.0 < a['v1'] < 2.5
