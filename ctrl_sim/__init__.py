from ctrl_sim.sim_lib import (simulate, simulate_behavioral, analyze, instantiate,
                              build_control_chain, ControlChain, GateDriver,
                              TrailingEdgePWM, DeadTimeGenerator, CPMModulator)
from ctrl_sim.tools import run_operating_points, find_vc

__all__ = ["simulate", "simulate_behavioral", "analyze", "instantiate", "build_control_chain",
           "ControlChain", "GateDriver", "TrailingEdgePWM", "DeadTimeGenerator",
           "CPMModulator", "run_operating_points", "find_vc"]
