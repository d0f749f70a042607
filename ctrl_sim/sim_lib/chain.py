from typing import Dict

from .block import Block
from .cpm import CPMModulator
from .dead_time import DeadTimeGenerator
from .gate_driver import GateDriver
from .params import CPMParams, DeadTimeParams, GateDriverParams, PWMParams
from .pwm import TrailingEdgePWM


class ControlChain(Block):
    """
    Modulator -> dead-time generator -> low-side and high-side gate drivers.

    The high-side driver takes `c1` with rails floating on the switch node,
    ``(Vsw + Vdrv, Vsw)``; the low-side driver takes `c2` with rails
    ``(Vdrv, 0)``. Both control inputs are referenced to ground.

    Within one instant all outputs are evaluated from the current inputs
    before any block commits its state.
    """

    OUTPUTS = ('c', 'c1', 'c2', 'gl', 'gh', 'ramp')

    def __init__(self, modulator: Block, dead_time: DeadTimeGenerator = None,
                 low_driver: GateDriver = None, high_driver: GateDriver = None):
        self.modulator = modulator
        self.dead_time = dead_time if dead_time is not None else DeadTimeGenerator()
        self.low_driver = low_driver if low_driver is not None else GateDriver()
        self.high_driver = high_driver if high_driver is not None else GateDriver()
        self.INPUTS = tuple(modulator.INPUTS) + ('Vdrv', 'Vsw')
        super().__init__(modulator.params)

    @classmethod
    def from_params(cls, params: dict, config: int = 1):
        """
        Build a chain from a flat parameter dict.

        config 1 uses the trailing-edge PWM, config 2 the peak current-mode
        modulator. Gate-driver and dead-time parameters are picked from the
        same dict.
        """
        if config == 1:
            modulator = TrailingEdgePWM(PWMParams.from_dict(params))
        elif config == 2:
            modulator = CPMModulator(CPMParams.from_dict(params))
        else:
            raise ValueError(f"Unknown chain config {config}; expected 1 (PWM) or 2 (CPM)")
        driver_params = GateDriverParams.from_dict(params)
        return cls(modulator,
                   DeadTimeGenerator(DeadTimeParams.from_dict(params)),
                   GateDriver(driver_params),
                   GateDriver(driver_params))

    def reset(self):
        for block in (self.modulator, self.dead_time, self.low_driver, self.high_driver):
            block.reset()

    def _modulator_inputs(self, inputs):
        return {k: inputs[k] for k in self.modulator.INPUTS}

    def _evaluate(self, t, inputs):
        mod = self.modulator.outputs(t, **self._modulator_inputs(inputs))
        c = mod['PWM'] if 'PWM' in mod else mod['c']
        dt_out = self.dead_time.outputs(t, c=c)
        return mod, c, dt_out

    def _rails(self, Vdrv, Vsw):
        return {'Vdd': Vdrv, 'Vss': 0.0}, {'Vdd': Vsw + Vdrv, 'Vss': Vsw}

    def outputs(self, t, Vdrv=12.0, Vsw=0.0, **inputs) -> Dict[str, float]:
        mod, c, dt_out = self._evaluate(t, inputs)
        low, high = self._rails(Vdrv, Vsw)
        gl = self.low_driver.outputs(t, c=dt_out['c2'], Vssin=0.0, **low)
        gh = self.high_driver.outputs(t, c=dt_out['c1'], Vssin=0.0, **high)
        return {
            'c': c,
            'c1': dt_out['c1'],
            'c2': dt_out['c2'],
            'gl': gl['out'],
            'gh': gh['out'],
            'ramp': mod['ramp'],
        }

    def update(self, t, dt, Vdrv=12.0, Vsw=0.0, **inputs):
        _, c, dt_out = self._evaluate(t, inputs)
        low, high = self._rails(Vdrv, Vsw)
        self.modulator.update(t, dt, **self._modulator_inputs(inputs))
        self.dead_time.update(t, dt, c=c)
        self.low_driver.update(t, dt, c=dt_out['c2'], Vssin=0.0, **low)
        self.high_driver.update(t, dt, c=dt_out['c1'], Vssin=0.0, **high)
