import numpy as np
from functools import partial
from scipy.optimize import minimize_scalar
import traceback

from ctrl_sim.sim_lib.analysis import analyze
from ctrl_sim.sim_lib.chain import ControlChain
from ctrl_sim.sim_lib.params import CPMParams, PWMParams
from ctrl_sim.sim_lib.primitives import RAMP_RISE_FRACTION, cycle_phase
from ctrl_sim.sim_lib.pwm import TrailingEdgePWM, clamp
from ctrl_sim.sim_lib.simulation import simulate_behavioral


def case_inputs(params, vc, vs0=0.0, config=1):
    """
    Input sources for a behavioural control chain at one operating point.

    For config 2 the sensed current is an inductor-like ramp rising by
    ``params['Vs_pk']`` over each period from the valley level `vs0`.
    """
    inputs = {'vc': vc, 'Vdrv': params.get('Vdrv', 12.0), 'Vsw': 0.0}
    if config == 2:
        period = 1.0 / params.get('fs', CPMParams().fs)
        vs_pk = params.get('Vs_pk', 0.0)

        def vs(t):
            _, phase = cycle_phase(t, period)
            return vs0 + vs_pk * min(phase / RAMP_RISE_FRACTION, 1.0)

        inputs['vs'] = vs
    return inputs


def expected_duty(params, vc, vs0=0.0, config=1):
    """Duty cycle the modulator should produce, including the 99 % ramp window."""
    if config == 1:
        return TrailingEdgePWM(PWMParams.from_dict(params)).duty_cycle(vc, realised=True)
    p = CPMParams.from_dict(params)
    slope = params.get('Vs_pk', 0.0) + p.Va
    b = clamp(vc, 0.0, p.Vcmax + p.Voffset)
    if b <= vs0 + p.Voffset:
        return p.Dmin
    if slope <= 0:
        return p.Dmax
    d = RAMP_RISE_FRACTION * (b - vs0 - p.Voffset) / slope
    return clamp(d, p.Dmin, p.Dmax)


def run_case(params, vc, vs0=0.0, config=1, SimCycles=4, TimeStep=10e-9, Full_Arr=False):
    """Simulate one operating point through the behavioural chain and analyze it."""
    chain = ControlChain.from_params(params, config=config)
    fsw = chain.params.fs
    results = simulate_behavioral(chain, fsw, TimeStep, SimCycles,
                                  inputs=case_inputs(params, vc, vs0, config))
    metrics = analyze(results, fsw, TimeStep, SimCycles, return_arrays=Full_Arr,
                      cycles_to_analyze=max(1, SimCycles - 1))
    metrics['vc'] = vc
    metrics['Dexpected'] = expected_duty(params, vc, vs0, config)
    return metrics


class ToleranceReached(Exception):
    """Exception raised when duty tolerance is met during optimization."""
    def __init__(self, vc, duty, error):
        self.vc = vc
        self.duty = duty
        self.error = error


def duty_error(vc, params, Dtarget, tol, SimCycles, TimeStep, config, vs0):
    """
    Absolute duty error of the simulated modulator at command `vc`.

    Raises ToleranceReached as soon as the error is within `tol`.
    """
    try:
        metrics = run_case(params, vc, vs0, config, SimCycles, TimeStep)
        duty = metrics['D']
        if not np.isfinite(duty):
            return 1e6

        error = abs(duty - Dtarget)
        if tol > 0 and error <= tol:
            raise ToleranceReached(vc, duty, error)
        return error

    except ToleranceReached:
        raise
    except Exception:
        print(f"[ERROR] Unexpected failure at vc = {vc:.4f} V. Details below:")
        traceback.print_exc()
        return 1e6


def find_vc(params, Dtarget, tol=2e-3, SimCycles=3, TimeStep=10e-9, config=1, vs0=0.0,
            Full_Arr=False):
    """
    Find the command voltage that makes the modulator produce `Dtarget`.

    Parameters
    ----------
    params : dict
        Flat parameter dict for ``ControlChain.from_params``.
    Dtarget : float
        Target duty cycle; must lie within [Dmin, Dmax].
    tol : float
        Absolute duty tolerance for early exit.
    SimCycles, TimeStep :
        Length and step of each behavioural run.
    config : int
        1 for trailing-edge PWM, 2 for peak current mode.
    vs0 : float
        Sensed-current valley level for config 2.
    Full_Arr : bool
        Include waveform arrays in the final results.

    Returns
    -------
    tuple
        ``(results, vc)``: metrics of the final run and the command found.
    """
    p = PWMParams.from_dict(params) if config == 1 else CPMParams.from_dict(params)
    if not (p.Dmin <= Dtarget <= p.Dmax):
        raise ValueError(f"Target duty {Dtarget} lies outside [Dmin, Dmax] = [{p.Dmin}, {p.Dmax}]")

    if config == 1:
        low, high = p.Voffset, p.Voffset + p.VM
    else:
        low, high = 0.0, p.Vcmax + p.Voffset

    print(f"Starting optimization in bounds ({low:.3f}, {high:.3f}) V for Dtarget = {Dtarget}")

    objective_function = partial(
        duty_error,
        params=params,
        Dtarget=Dtarget,
        tol=tol,
        SimCycles=SimCycles,
        TimeStep=TimeStep,
        config=config,
        vs0=vs0,
    )

    try:
        result = minimize_scalar(
            objective_function,
            bounds=(low, high),
            method='bounded',
            options={'xatol': 1e-4, 'maxiter': 100}
        )
        vc = float(result.x)
        print("\nOptimization finished without reaching the exact duty tolerance.")
        print(f"Best vc = {vc:.6f} V, |err| ≈ {result.fun:.6g}")

    except ToleranceReached as e:
        vc = float(e.vc)
        print(f"\nFinal solution found! vc = {vc:.6f} V "
              f"(D={e.duty:.4f}, |err|={e.error:.6g} ≤ tol={tol})")

    final_results = run_case(params, vc, vs0, config, SimCycles, TimeStep, Full_Arr=Full_Arr)
    return final_results, vc
