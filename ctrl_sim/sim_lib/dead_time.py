from typing import Dict

from .block import Block
from .params import DeadTimeParams
from .primitives import DiodeRCLag, buffer, inverter


class DeadTimeGenerator(Block):
    """
    Splits one PWM signal into two complementary, non-overlapping signals.

    `c` and its complement each drive a diode-shaped lag: the rising edge
    charges through R and is delayed by about `Td`, the falling edge is
    discharged by the diode at once. Each lag is re-digitised at 2.5 V to
    give `c1` and `c2`. Since the two paths are driven by complementary
    inputs and each lag never exceeds its input, `c1` and `c2` are never
    high together.

    :inputs: c
    :outputs: c1, c2 and the analog lag voltages v1, v2
    """

    PORTS = ('c', 'c1', 'c2')
    INPUTS = ('c',)
    OUTPUTS = ('c1', 'c2', 'v1', 'v2')

    def __init__(self, params: DeadTimeParams = None):
        super().__init__(params if params is not None else DeadTimeParams())

    def reset(self):
        self._path1 = DiodeRCLag(self.params.tau)
        self._path2 = DiodeRCLag(self.params.tau)

    def outputs(self, t, c) -> Dict[str, float]:
        v1 = self._path1.value(buffer(c))
        v2 = self._path2.value(inverter(c))
        return {'c1': buffer(v1), 'c2': buffer(v2), 'v1': v1, 'v2': v2}

    def update(self, t, dt, c):
        self._path1.advance(buffer(c), dt)
        self._path2.advance(inverter(c), dt)

    def duty_cycles(self, D: float, fs: float):
        """Nominal output duty cycles ``(D1, D2)`` for an input of duty `D` at `fs`."""
        td = self.params.Td * fs
        return max(D - td, 0.0), max(1.0 - D - td, 0.0)
