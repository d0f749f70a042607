import numpy as np
import pytest

from ctrl_sim import analyze, build_control_chain, simulate
from ctrl_sim.sim_lib.params import DeadTimeParams, GateDriverParams
from ctrl_sim.sim_lib.subcircuits import (CPMSubCir, DeadTimeSubCir, GateDriverSubCir,
                                          TrailingEdgePWMSubCir)

FSW = 100e3
TIME_STEP = 10e-9
CYCLES = 3


@pytest.fixture(scope="module")
def ngspice():
    """Transient runs need the ngspice shared library next to PySpice."""
    from PySpice.Spice.NgSpice.Shared import NgSpiceShared
    try:
        NgSpiceShared.new_instance()
    except Exception as e:
        pytest.skip(f"ngspice shared library not available ({e})")


def run_bench(config=1, **params):
    params.setdefault('vc', 0.5)
    circuit = build_control_chain(params, config=config)
    analysis = simulate(circuit, FSW, TIME_STEP, CYCLES)
    return analyze(analysis, FSW, TIME_STEP, CYCLES, return_arrays=True)


# ──────────────────────────────────────────────── Netlists

@pytest.mark.parametrize("cls, nodes", [
    (GateDriverSubCir, ('c', 'Vdd', 'Vss', 'Vssin', 'out')),
    (TrailingEdgePWMSubCir, ('vc', 'c')),
    (DeadTimeSubCir, ('c', 'c1', 'c2')),
    (CPMSubCir, ('vc', 'vs', 'PWM', 'ramp')),
])
def test_port_order(cls, nodes):
    assert cls.__nodes__ == nodes


def test_gate_driver_netlist_carries_delay_parameters():
    netlist = str(GateDriverSubCir('GATE_DRIVER', GateDriverParams(Tdelay=40e-9)))
    assert '.subckt GATE_DRIVER' in netlist
    assert 'Tdelay=4e-08' in netlist
    assert 'Cdelay={Tdelay/(Rdelay*0.693147)}' in netlist


def test_dead_time_netlist_derives_capacitance_from_td():
    netlist = str(DeadTimeSubCir('DEAD_TIME', DeadTimeParams(Td=50e-9)))
    assert '.subckt DEAD_TIME' in netlist
    assert 'Td=5e-08' in netlist
    assert 'Cdt={Td/(Rdt*0.693)}' in netlist


def test_netlist_uses_resolved_expressions():
    netlist = str(GateDriverSubCir('GATE_DRIVER', GateDriverParams(Tdelay='Rdelay*4e-11')))
    assert 'Tdelay=4e-08' in netlist


@pytest.mark.parametrize("config, modulator", [(1, 'TE_PWM'), (2, 'CPM')])
def test_build_control_chain(config, modulator):
    circuit = build_control_chain({'vc': 0.5, 'Vs_pk': 0.5, 'Va': 0.5}, config=config)
    netlist = str(circuit)
    for name in (modulator, 'DEAD_TIME', 'GATE_DRIVER'):
        assert f'.subckt {name}' in netlist
    assert 'Xdrv_hs' in netlist
    assert 'Xdrv_ls' in netlist


def test_build_control_chain_rejects_unknown_config():
    with pytest.raises(ValueError):
        build_control_chain({'vc': 0.5}, config=5)


def test_build_control_chain_requires_command():
    with pytest.raises(KeyError):
        build_control_chain({}, config=1)


# ──────────────────────────────────────────────── Transient (ngspice)

def test_transient_pwm_chain(ngspice):
    m = run_bench(vc=0.5)
    assert m['D'] == pytest.approx(0.495, abs=0.01)
    assert m['period'] == pytest.approx(1 / FSW, rel=1e-3)
    assert m['D1'] == pytest.approx(0.485, abs=0.01)
    assert m['D2'] == pytest.approx(0.495, abs=0.01)
    assert m['overlaps'] == 0
    assert m['deadTimeMin'] == pytest.approx(100e-9, rel=0.2)


def test_transient_gate_drive_levels(ngspice):
    m = run_bench(vc=0.5, Vdrv=12.0)
    assert np.max(m['gl']) == pytest.approx(12.0, abs=0.5)
    assert np.min(m['gl']) == pytest.approx(0.0, abs=0.5)
    assert m['DL'] == pytest.approx(m['D2'], abs=0.01)


def test_transient_uvlo_holds_gates_low(ngspice):
    m = run_bench(vc=0.5, Vdrv=8.0)
    assert np.max(m['gl']) < 1.0
    # The modulator keeps switching under lockout
    assert m['D'] == pytest.approx(0.495, abs=0.01)


def test_transient_cpm_chain(ngspice):
    # 0.5 V/period sensed ramp plus 0.5 V/period artificial ramp reach 0.5 V at mid-period
    m = run_bench(config=2, vc=0.5, Va=0.5, Vs_pk=0.5)
    assert m['D'] == pytest.approx(0.495, abs=0.01)
    assert m['overlaps'] == 0


def test_transient_cpm_clamps_at_dmax(ngspice):
    m = run_bench(config=2, vc=4.0, Va=0.5, Vs_pk=0.5)
    assert m['D'] == pytest.approx(0.9, abs=0.01)
