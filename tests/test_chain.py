import numpy as np
import pytest

from ctrl_sim.sim_lib import (COMPONENTS, PORTS, CPMModulator, ControlChain, GateDriver,
                              GateDriverParams, PWMParams, TrailingEdgePWM, instantiate)
from ctrl_sim.sim_lib.analysis import analyze, measure_duty, measure_period
from ctrl_sim.sim_lib.simulation import simulate_behavioral

FSW = 100e3
TIME_STEP = 10e-9
CYCLES = 3


def run_chain(chain, **inputs):
    inputs.setdefault('Vdrv', 12.0)
    inputs.setdefault('Vsw', 0.0)
    return simulate_behavioral(chain, FSW, TIME_STEP, CYCLES, inputs=inputs)


# ──────────────────────────────────────────────── Fixtures

@pytest.fixture
def pwm_chain():
    """Trailing-edge PWM -> dead time -> two gate drivers, all defaults"""
    return ControlChain.from_params({}, config=1)


# ──────────────────────────────────────────────── Control chain

def test_pwm_chain_metrics(pwm_chain):
    res = run_chain(pwm_chain, vc=0.5)
    m = analyze(res, FSW, TIME_STEP, CYCLES)
    assert m['D'] == pytest.approx(0.495, abs=2e-3)
    assert m['D1'] == pytest.approx(0.485, abs=3e-3)
    assert m['D2'] == pytest.approx(0.495, abs=3e-3)
    assert m['DL'] == pytest.approx(m['D2'], abs=3e-3)
    assert m['period'] == pytest.approx(1 / FSW, rel=1e-6)
    assert 95e-9 < m['deadTimeMin'] < 115e-9
    assert m['overlaps'] == 0


def test_gate_outputs_never_overlap(pwm_chain):
    res = run_chain(pwm_chain, vc=0.7)
    both_on = (res['gh'] > 6.0) & (res['gl'] > 6.0)
    assert not np.any(both_on)


def test_high_side_floats_on_switch_node(pwm_chain):
    res = run_chain(pwm_chain, vc=0.5, Vsw=48.0)
    assert set(np.unique(res['gh'])) == {48.0, 60.0}
    assert set(np.unique(res['gl'])) == {0.0, 12.0}


def test_chain_uvlo_blocks_both_gates(pwm_chain):
    res = run_chain(pwm_chain, vc=0.5, Vdrv=8.0)
    assert np.all(res['gl'] == 0.0)
    assert np.all(res['gh'] == 0.0)
    # Modulator and dead time keep running
    assert np.any(res['c1'] > 2.5)


def test_cpm_chain():
    chain = ControlChain.from_params({'Va': 1.0}, config=2)
    assert isinstance(chain.modulator, CPMModulator)
    res = run_chain(chain, vc=1.0, vs=0.2)
    m = analyze(res, FSW, TIME_STEP, CYCLES, return_arrays=True)
    assert m['D'] == pytest.approx(0.792, abs=2e-3)
    assert m['overlaps'] == 0
    assert 'ramp' in m and m['ramp'].shape == m['time'].shape


def test_chain_picks_parameters_from_dict():
    chain = ControlChain.from_params({'fs': 200e3, 'Td': 50e-9, 'Tdelay': 40e-9}, config=1)
    assert chain.modulator.params.fs == 200e3
    assert chain.dead_time.params.Td == 50e-9
    assert chain.high_driver.params.Tdelay == 40e-9
    assert chain.low_driver is not chain.high_driver


def test_unknown_config_rejected():
    with pytest.raises(ValueError):
        ControlChain.from_params({}, config=3)


def test_missing_inputs_rejected(pwm_chain):
    with pytest.raises(ValueError, match="vc"):
        simulate_behavioral(pwm_chain, FSW, TIME_STEP, 1, inputs={'Vdrv': 12.0, 'Vsw': 0.0})


def test_input_array_length_checked():
    with pytest.raises(ValueError, match="shape"):
        simulate_behavioral(TrailingEdgePWM(), FSW, TIME_STEP, 1, inputs={'vc': np.zeros(10)})


@pytest.mark.parametrize("fsw, step, cycles", [(0, 1e-9, 1), (FSW, 0, 1), (FSW, 1e-9, 0)])
def test_driver_arguments_validated(fsw, step, cycles):
    with pytest.raises(ValueError):
        simulate_behavioral(TrailingEdgePWM(), fsw, step, cycles, inputs={'vc': 0.5})


def test_time_start_save_trims_record():
    res = simulate_behavioral(TrailingEdgePWM(), FSW, TIME_STEP, 3, inputs={'vc': 0.5},
                              TimeStartSave=1)
    assert res['time'][0] == pytest.approx(1 / FSW)
    assert res['c'].size == 2000


# ──────────────────────────────────────────────── Analysis

def test_analyze_reports_missing_signals():
    with pytest.raises(ValueError, match="c1"):
        analyze({'time': np.arange(10.0), 'c': np.zeros(10)}, FSW, TIME_STEP, 1)


def test_period_of_flat_signal_warns():
    t = np.arange(100) * 1e-9
    with pytest.warns(RuntimeWarning):
        assert np.isnan(measure_period(t, np.zeros(100)))


def test_duty_window_longer_than_record_warns():
    t = np.arange(1000) * TIME_STEP
    c = np.where(t < 5e-6, 5.0, 0.0)
    with pytest.warns(RuntimeWarning):
        assert measure_duty(t, c, FSW, cycles_to_analyze=4) == pytest.approx(0.5)


# ──────────────────────────────────────────────── Component library

def test_port_lists():
    assert PORTS['GateDriver'] == ('c', 'Vdd', 'Vss', 'Vssin', 'out')
    assert PORTS['TrailingEdgePWM'] == ('vc', 'c')
    assert PORTS['DeadTimeGenerator'] == ('c', 'c1', 'c2')
    assert PORTS['CPMModulator'] == ('vc', 'vs', 'PWM', 'ramp')
    assert set(COMPONENTS) == set(PORTS)


def test_instantiate_with_overrides():
    driver = instantiate('GateDriver', Tdelay=50e-9)
    assert isinstance(driver, GateDriver)
    assert driver.params.Tdelay == 50e-9
    assert driver.params.Imax == 3.0

    pwm = instantiate('TrailingEdgePWM', {'fs': 50e3, 'Td': 1e-9}, Dmax=0.8)
    assert (pwm.params.fs, pwm.params.Dmax) == (50e3, 0.8)

    base = GateDriverParams(Vuvl=10.0)
    assert instantiate('GateDriver', base).params is base
    assert instantiate('GateDriver', base, IQ=2e-3).params.Vuvl == 10.0


def test_instantiate_rejects_bad_configuration():
    with pytest.raises(ValueError):
        instantiate('TrailingEdgePWM', Dmin=0.9, Dmax=0.5)
    with pytest.raises(ValueError, match="Unknown component"):
        instantiate('BuckConverter')


def test_instances_are_independent():
    a = instantiate('TrailingEdgePWM', PWMParams())
    b = instantiate('TrailingEdgePWM', PWMParams())
    a.update(0.0, TIME_STEP, vc=0.5)
    a.update(6e-6, TIME_STEP, vc=0.5)
    # a has tripped in this period, b is set on its first evaluation
    assert a.outputs(6.5e-6, vc=0.5)['c'] == 0.0
    assert b.outputs(6.5e-6, vc=0.5)['c'] == 5.0


def test_instantiate_resolves_parameter_expressions():
    driver = instantiate('GateDriver', {'Tdelay': '2*Imax*10e-9'})
    assert driver.params.Tdelay == pytest.approx(60e-9)
    faster = instantiate('GateDriver', {'Tdelay': '2*Imax*10e-9'}, Imax=1.0)
    assert faster.params.Tdelay == pytest.approx(20e-9)
    chain = ControlChain.from_params({'Dmax': '1 - 2*Dmin', 'Dmin': 0.05}, config=1)
    assert chain.modulator.params.Dmax == pytest.approx(0.9)
