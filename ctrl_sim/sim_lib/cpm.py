from typing import Dict

from .params import CPMParams
from .primitives import LOGIC_HIGH, comparator, sawtooth
from .pwm import LatchedModulator, clamp


class CPMModulator(LatchedModulator):
    """
    Peak current-mode modulator.

    The switch command `PWM` rises at the start of each period and falls
    once the sensed current `vs` plus the artificial ramp reaches the
    clamped command ``clamp(vc, 0, Vcmax + Voffset)``. The artificial ramp
    rises from `Voffset` to ``Voffset + Va`` over 99 % of the period in
    step with the period start. The Dmin/Dmax structure is the same as for
    the trailing-edge PWM.

    :inputs: vc, vs
    :outputs: PWM, ramp (``vs`` + artificial ramp), plus the clamped command `b`
    """

    PORTS = ('vc', 'vs', 'PWM', 'ramp')
    INPUTS = ('vc', 'vs')
    OUTPUTS = ('PWM', 'ramp', 'b')

    def __init__(self, params: CPMParams = None):
        super().__init__(params if params is not None else CPMParams())

    def command(self, vc: float) -> float:
        p = self.params
        return clamp(vc, 0.0, p.Vcmax + p.Voffset)

    def _trip(self, t, vc, vs):
        p = self.params
        a = vs + sawtooth(t, p.period, p.Voffset, p.Voffset + p.Va)
        return comparator(a, self.command(vc)), a

    def outputs(self, t, vc, vs) -> Dict[str, float]:
        _, _, _, q, a = self._evaluate(t, vc=vc, vs=vs)
        return {
            'PWM': LOGIC_HIGH if q else 0.0,
            'ramp': a,
            'b': self.command(vc),
        }

    def update(self, t, dt, vc, vs):
        super().update(t, dt, vc=vc, vs=vs)
