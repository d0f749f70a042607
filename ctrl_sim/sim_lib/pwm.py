from typing import Dict

from .block import Block
from .params import PWMParams
from .primitives import (LOGIC_HIGH, RAMP_RISE_FRACTION, SRLatch, comparator, cycle_phase,
                         logic, or_gate, pulse, sawtooth)


def clamp(x, lo, hi):
    return min(max(x, lo), hi)


class LatchedModulator(Block):
    """
    Fixed-frequency set/reset modulator skeleton.

    Each period the latch is SET at the period start, for at least the
    first evaluation of the period and for as long as the phase is below
    `Dmin`. RESET is the OR of a trip comparator, supplied by the subclass,
    and the max-duty pulse that is asserted from phase `Dmax` to the end of
    the period. SET dominates a simultaneous RESET.
    """

    def reset(self):
        self._latch = SRLatch()
        self._period_index = None

    def _clock(self, t):
        p = self.params
        index, _ = cycle_phase(t, p.period)
        min_duty = pulse(t, p.period, p.Dmin * p.period)
        max_duty = pulse(t, p.period, (1.0 - p.Dmax) * p.period, delay=p.Dmax * p.period)
        set_ = index != self._period_index or logic(min_duty)
        return index, set_, max_duty

    def _trip(self, t, **inputs):
        """Return ``(trip, ramp)``: comparator output voltage and the ramp it compared."""
        raise NotImplementedError

    def _evaluate(self, t, **inputs):
        index, set_, max_duty = self._clock(t)
        trip, ramp = self._trip(t, **inputs)
        reset = logic(or_gate(trip, max_duty))
        q = self._latch.peek(set_, reset)
        return index, set_, reset, q, ramp

    def update(self, t, dt, **inputs):
        index, set_, reset, _, _ = self._evaluate(t, **inputs)
        self._latch.update(set_, reset)
        self._period_index = index


class TrailingEdgePWM(LatchedModulator):
    """
    Trailing-edge PWM.

    The output `c` rises at the start of each period and falls when the
    sawtooth ``Voffset -> Voffset + VM`` reaches the control voltage `vc`,
    clamped between `Dmin` and `Dmax`.

    :inputs: vc
    :outputs: c, plus the diagnostic ramp, set and reset signals
    """

    PORTS = ('vc', 'c')
    INPUTS = ('vc',)
    OUTPUTS = ('c', 'ramp', 'set', 'reset')

    def __init__(self, params: PWMParams = None):
        super().__init__(params if params is not None else PWMParams())

    def _trip(self, t, vc):
        p = self.params
        ramp = sawtooth(t, p.period, p.Voffset, p.Voffset + p.VM)
        return comparator(ramp, vc), ramp

    def outputs(self, t, vc) -> Dict[str, float]:
        _, set_, reset, q, ramp = self._evaluate(t, vc=vc)
        return {
            'c': LOGIC_HIGH if q else 0.0,
            'ramp': ramp,
            'set': LOGIC_HIGH if set_ else 0.0,
            'reset': LOGIC_HIGH if reset else 0.0,
        }

    def update(self, t, dt, vc):
        super().update(t, dt, vc=vc)

    def duty_cycle(self, vc: float, realised: bool = False) -> float:
        """
        Duty cycle for a constant control voltage.

        By default this is the nominal law ``clamp((vc - Voffset)/VM, Dmin, Dmax)``.
        The ramp only rises over 99 % of the period, so the simulated output
        crosses at ``0.99*(vc - Voffset)/VM`` instead; pass ``realised=True``
        for that value.
        """
        p = self.params
        d = (vc - p.Voffset) / p.VM
        if realised:
            d *= RAMP_RISE_FRACTION
        return clamp(d, p.Dmin, p.Dmax)
