from PySpice.Spice.Netlist import Circuit

from .params import CPMParams, DeadTimeParams, GateDriverParams, PWMParams
from .subcircuits import (CPMSubCir, DeadTimeSubCir, GateDriverSubCir, TrailingEdgePWMSubCir,
                          add_ramp)


def build_control_chain(params: dict, config=1) -> Circuit:

    """
    Build a half-bridge test bench driven by the full control chain.

    Parameters
    ----------
    params : dict
        Flat parameter dict. Block parameters (fs, VM, Dmin, Dmax, Voffset,
        Va, Vcmax, Td, Imax, Vuvl, IQ, Tdelay, ...) are picked by name;
        missing ones take their defaults. Bench parameters:
    vc : float
        Command voltage [V].
    Vdrv : float, optional
        Gate driver supply [V], default 12.
    Vbus : float, optional
        Half-bridge bus voltage [V], default 48.
    Rload : float, optional
        Load resistance from the switch node to ground [Ohm], default 10.
    Lload : float, optional
        Load inductance in series with Rload [H], default 10e-6.
    Vs_pk : float, optional
        Peak of the synthetic sensed-current ramp for config 2 [V], default 1.
    config : int
        1 for the trailing-edge PWM modulator, 2 for the peak current-mode
        modulator.

    Returns
    -------
    Circuit
        A PySpice `Circuit` with nodes 'c' (modulator output), 'c1', 'c2',
        'gl', 'gh' (gate drives), 'sw' (switch node) and 'ramp'.
    """

    vc = params['vc']
    Vdrv = params.get('Vdrv', 12)
    Vbus = params.get('Vbus', 48)
    RL = params.get('Rload', 10)
    LL = params.get('Lload', 10e-6)

    circuit = Circuit('CONTROL_CHAIN')

    circuit.model('Switch', 'SW',
              Ron=0.02,
              Roff=1e9,
              Vt=0.5 * Vdrv, Vh=0.1 * Vdrv)
    # Freewheeling path for the load current while both switches are off
    circuit.model('BodyDiode', 'D', IS=1e-12, RS=0.01)

    circuit.V('c', 'vc', circuit.gnd, vc)

    if config == 1:
        p = PWMParams.from_dict(params)
        circuit.subcircuit(TrailingEdgePWMSubCir('TE_PWM', p))
        circuit.X('mod', 'TE_PWM', 'vc', 'c')
        # Expose the comparator ramp for analysis
        add_ramp(circuit, 'ramp', 'ramp', 1 / p.fs, p.Voffset, p.Voffset + p.VM)

    elif config == 2:
        p = CPMParams.from_dict(params)
        circuit.subcircuit(CPMSubCir('CPM', p))
        # Synthetic sensed current: inductor ramp restarting every period
        add_ramp(circuit, 's', 'vs', 1 / p.fs, 0, params.get('Vs_pk', 1))
        circuit.X('mod', 'CPM', 'vc', 'vs', 'c', 'ramp')

    else:
        raise ValueError(f"Unknown chain config {config}; expected 1 (PWM) or 2 (CPM)")

    circuit.subcircuit(DeadTimeSubCir('DEAD_TIME', DeadTimeParams.from_dict(params)))
    circuit.X('dt', 'DEAD_TIME', 'c', 'c1', 'c2')

    circuit.subcircuit(GateDriverSubCir('GATE_DRIVER', GateDriverParams.from_dict(params)))

    # Low side: ground-referenced rails
    circuit.V('drv_ls', 'vdd_ls', circuit.gnd, Vdrv)
    circuit.X('drv_ls', 'GATE_DRIVER', 'c2', 'vdd_ls', circuit.gnd, circuit.gnd, 'gl')

    # High side: rails float on the switch node
    circuit.V('drv_hs', 'vdd_hs', 'sw', Vdrv)
    circuit.X('drv_hs', 'GATE_DRIVER', 'c1', 'vdd_hs', 'sw', circuit.gnd, 'gh')

    circuit.V('bus', 'bus', circuit.gnd, Vbus)
    circuit.VCS('hs', 'bus', 'sw', 'gh', 'sw', model='Switch', initial_state='off')
    circuit.Diode('hs', 'sw', 'bus', model='BodyDiode')
    circuit.VCS('ls', 'sw', circuit.gnd, 'gl', circuit.gnd, model='Switch', initial_state='off')
    circuit.Diode('ls', circuit.gnd, 'sw', model='BodyDiode')

    circuit.L('load', 'sw', 'ld', LL)
    circuit.R('load', 'ld', circuit.gnd, RL)

    circuit.Lload.plus.add_current_probe(circuit)

    return circuit
