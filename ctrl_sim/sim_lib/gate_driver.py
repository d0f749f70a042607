from typing import Dict

from .block import Block
from .params import GateDriverParams
from .primitives import LOGIC_THRESHOLD, RCLag, SquareLawSwitch, translate


class GateDriver(Block):
    """
    Isolated gate driver with propagation delay and undervoltage lockout.

    The logic input `c`, referenced to `Vssin`, is translated onto the
    power-side ground `Vss`, delayed through a symmetric RC lag and then
    compared with 2.5 V above `Vss`. The output swings to `Vdd` when the
    delayed signal is above the threshold and the supply ``Vdd - Vss`` is
    at least `Vuvl`; otherwise it is held at `Vss`.

    :inputs: c, Vdd, Vss, Vssin
    :outputs:
        - **out**: `Vdd` or `Vss`
        - **delayed**: lag voltage (absolute, i.e. `Vss` + lag)
        - **uvlo**: True while the supply is below `Vuvl`
        - **iq**: quiescent supply current (A)
    """

    PORTS = ('c', 'Vdd', 'Vss', 'Vssin', 'out')
    INPUTS = ('c', 'Vdd', 'Vss', 'Vssin')
    OUTPUTS = ('out', 'delayed', 'uvlo', 'iq')

    def __init__(self, params: GateDriverParams = None):
        params = params if params is not None else GateDriverParams()
        self._high_side = SquareLawSwitch(params.Vt, params.Kp)
        self._low_side = SquareLawSwitch(params.Vt, params.Kp)
        super().__init__(params)

    def reset(self):
        # Lag state is measured relative to Vss
        self._lag = RCLag(self.params.tau)

    def uvlo(self, Vdd: float, Vss: float) -> bool:
        return (Vdd - Vss) < self.params.Vuvl

    def decision(self, Vdd: float, Vss: float) -> bool:
        return self._lag.v > LOGIC_THRESHOLD and not self.uvlo(Vdd, Vss)

    def outputs(self, t, c, Vdd, Vss, Vssin=0.0) -> Dict[str, float]:
        high = self.decision(Vdd, Vss)
        return {
            'out': Vdd if high else Vss,
            'delayed': Vss + self._lag.v,
            'uvlo': self.uvlo(Vdd, Vss),
            'iq': self.params.IQ,
        }

    def update(self, t, dt, c, Vdd, Vss, Vssin=0.0):
        isolated = translate(c, Vssin, Vss)
        self._lag.advance(isolated - Vss, dt)

    def load_current(self, v_load: float, high: bool, Vdd: float, Vss: float) -> float:
        """
        Current delivered into a load held at `v_load`.

        Positive values are sourced from `Vdd` through the high-side switch,
        negative values are sunk into `Vss` through the low-side switch. Both
        switches see the full rail-to-rail gate drive.
        """
        vgs = Vdd - Vss
        if high:
            return self._high_side.current(vgs, Vdd - v_load)
        return -self._low_side.current(vgs, v_load - Vss)

    def supply_current(self, v_load: float, high: bool, Vdd: float, Vss: float) -> float:
        return self.params.IQ + max(self.load_current(v_load, high, Vdd, Vss), 0.0)
