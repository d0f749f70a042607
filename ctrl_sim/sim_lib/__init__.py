from .params import (ParameterError, GateDriverParams, PWMParams,
                     DeadTimeParams, CPMParams)
from .gate_driver import GateDriver
from .pwm import TrailingEdgePWM
from .dead_time import DeadTimeGenerator
from .cpm import CPMModulator
from .chain import ControlChain
from .library import COMPONENTS, PORTS, instantiate
from .simulation import simulate, simulate_behavioral
from .analysis import (analyze, measure_duty, measure_period, measure_propagation_delay,
                       measure_dead_times, count_overlaps)
from .circuit_builder import build_control_chain
