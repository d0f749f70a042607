from PySpice.Spice.Netlist import SubCircuit

from .params import CPMParams, DeadTimeParams, GateDriverParams, PWMParams
from .primitives import LOGIC_HIGH, LOGIC_THRESHOLD, RAMP_RISE_FRACTION

# Edge time of the internal clock pulses
EDGE_TIME = 1e-9
# Flat top of the ramp pulses; ngspice reads a zero pulse width as TSTOP
RAMP_HOLD = 1e-12


def add_ramp(netlist, name, node, period, v_low, v_high):
    """Sawtooth from `v_low` to `v_high` rising over 99 % of `period`, referenced to ground."""
    netlist.PulseVoltageSource(name, node, 0,
        initial_value=v_low, pulsed_value=v_high,
        delay_time=0,
        pulse_width=RAMP_HOLD,
        period=period,
        rise_time=RAMP_RISE_FRACTION * period,
        fall_time=(1 - RAMP_RISE_FRACTION) * period - RAMP_HOLD)


class GateDriverSubCir(SubCircuit):
    __nodes__ = ('c', 'Vdd', 'Vss', 'Vssin', 'out')

    def __init__(self, name='GATE_DRIVER', params: GateDriverParams = None):

        SubCircuit.__init__(self, name, *self.__nodes__)
        p = params if params is not None else GateDriverParams()

        # Floating translator: V(iso) - V(Vss) = V(c) - V(Vssin)
        self.VCVS('iso', 'iso', 'Vss', 'c', 'Vssin', voltage_gain=1)

        # Decision and UVLO drive the common gate of the push-pull pair
        self.B('gate', 'g', 'Vss',
               voltage_expression=(f'(V(dly,Vss) > {LOGIC_THRESHOLD} && V(Vdd,Vss) >= {p.Vuvl})'
                                   f' ? 0 : V(Vdd,Vss)'))

        self.model('PDRV', 'PMOS', VTO=-p.Vt, KP=p.Kp)
        self.model('NDRV', 'NMOS', VTO=p.Vt, KP=p.Kp)
        self.MOSFET('hs', 'out', 'g', 'Vdd', 'Vdd', model='PDRV')
        self.MOSFET('ls', 'out', 'g', 'Vss', 'Vss', model='NDRV')

        self.I('q', 'Vdd', 'Vss', p.IQ)

        # Delay RC, capacitance derived from Tdelay
        self.raw_spice = (f'.param Rdelay={p.Rdelay} Tdelay={p.Tdelay}\n'
                          '.param Cdelay={Tdelay/(Rdelay*0.693147)}\n'
                          'Rdly iso dly {Rdelay}\n'
                          'Cdly dly Vss {Cdelay}')
        return


class _LatchedModulatorSubCir(SubCircuit):
    """Period-start SET, max-duty pulse, OR gate and set-dominant latch driving `out`."""

    def _period_logic(self, p, trip, out):
        period = 1 / p.fs

        self.PulseVoltageSource('set', 'set', 0,
            initial_value=0, pulsed_value=LOGIC_HIGH,
            delay_time=0,
            pulse_width=max(p.Dmin * period, EDGE_TIME),
            period=period,
            rise_time=EDGE_TIME, fall_time=EDGE_TIME)

        self.PulseVoltageSource('dmax', 'dmax', 0,
            initial_value=0, pulsed_value=LOGIC_HIGH,
            delay_time=p.Dmax * period,
            pulse_width=max((1 - p.Dmax) * period - 2 * EDGE_TIME, 0),
            period=period,
            rise_time=EDGE_TIME, fall_time=EDGE_TIME)

        self.B('rst', 'rst', 0,
               voltage_expression=(f'(V({trip}) > {LOGIC_THRESHOLD} || V(dmax) > {LOGIC_THRESHOLD})'
                                   f' ? {LOGIC_HIGH} : 0'))

        # Set-dominant latch, state held on a small RC
        self.B('latch', out, 0,
               voltage_expression=(f'V(set) > {LOGIC_THRESHOLD} ? {LOGIC_HIGH}'
                                   f' : (V(rst) > {LOGIC_THRESHOLD} ? 0 : V(q))'))
        self.R('hold', out, 'q', 1e3)
        self.C('hold', 'q', 0, 1e-12)
        # DC path for the hold node at the operating point
        self.R('leak', 'q', 0, 1e9)


class TrailingEdgePWMSubCir(_LatchedModulatorSubCir):
    __nodes__ = ('vc', 'c')

    def __init__(self, name='TE_PWM', params: PWMParams = None):

        SubCircuit.__init__(self, name, *self.__nodes__)
        p = params if params is not None else PWMParams()

        add_ramp(self, 'ramp', 'ramp', 1 / p.fs, p.Voffset, p.Voffset + p.VM)
        self.B('cmp', 'trip', 0,
               voltage_expression=f'V(ramp) >= V(vc) ? {LOGIC_HIGH} : 0')
        self._period_logic(p, 'trip', 'c')
        return


class CPMSubCir(_LatchedModulatorSubCir):
    __nodes__ = ('vc', 'vs', 'PWM', 'ramp')

    def __init__(self, name='CPM', params: CPMParams = None):

        SubCircuit.__init__(self, name, *self.__nodes__)
        p = params if params is not None else CPMParams()

        self.B('clamp', 'b', 0,
               voltage_expression=f'min(max(V(vc), 0), {p.Vcmax + p.Voffset})')
        add_ramp(self, 'art', 'art', 1 / p.fs, p.Voffset, p.Voffset + p.Va)
        self.B('sum', 'ramp', 0, voltage_expression='V(vs) + V(art)')
        self.B('cmp', 'trip', 0,
               voltage_expression=f'V(ramp) >= V(b) ? {LOGIC_HIGH} : 0')
        self._period_logic(p, 'trip', 'PWM')
        return


class DeadTimeSubCir(SubCircuit):
    __nodes__ = ('c', 'c1', 'c2')

    def __init__(self, name='DEAD_TIME', params: DeadTimeParams = None):

        SubCircuit.__init__(self, name, *self.__nodes__)
        p = params if params is not None else DeadTimeParams()

        self.B('buf', 'cb', 0, voltage_expression=f'V(c) > {LOGIC_THRESHOLD} ? {LOGIC_HIGH} : 0')
        self.B('inv', 'cn', 0, voltage_expression=f'V(c) > {LOGIC_THRESHOLD} ? 0 : {LOGIC_HIGH}')

        self.model('DFAST', 'D', IS=1e-12, RS=1)
        self.D(1, 'n1', 'cb', model='DFAST')
        self.D(2, 'n2', 'cn', model='DFAST')

        # Re-digitise the delayed waveforms
        self.B('c1', 'c1', 0, voltage_expression=f'V(n1) > {LOGIC_THRESHOLD} ? {LOGIC_HIGH} : 0')
        self.B('c2', 'c2', 0, voltage_expression=f'V(n2) > {LOGIC_THRESHOLD} ? {LOGIC_HIGH} : 0')

        # Slow charge through R, fast discharge through the diodes
        self.raw_spice = (f'.param Td={p.Td} Rdt={p.R}\n'
                          '.param Cdt={Td/(Rdt*0.693)}\n'
                          'R1 cb n1 {Rdt}\n'
                          'C1 n1 0 {Cdt}\n'
                          'R2 cn n2 {Rdt}\n'
                          'C2 n2 0 {Cdt}')
        return
