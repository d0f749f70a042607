import numpy as np
import warnings
from typing import Dict, Any, Tuple

from .primitives import LOGIC_THRESHOLD


def validate_analysis_signals(analysis: Any, required_signals: list) -> None:
    """
    Validate that all required signals are present in analysis results.

    Parameters
    ----------
    analysis : dict or PySpice waveform object
        The simulation result object
    required_signals : list
        List of required signal names

    Raises
    ------
    ValueError
        If any required signal is missing
    """
    missing = []
    for signal in required_signals:
        # PySpice results expose time as an attribute, behavioural ones as a key
        if signal == 'time' and hasattr(analysis, 'time'):
            continue
        try:
            _ = analysis[signal]
        except (KeyError, TypeError, IndexError):
            missing.append(signal)

    if missing:
        raise ValueError(
            f"Missing required signals in analysis results: {', '.join(missing)}"
        )


def get_signal(analysis: Any, name: str) -> np.ndarray:
    if name == 'time' and hasattr(analysis, 'time'):
        return np.asarray(analysis.time, dtype=float)
    return np.asarray(analysis[name], dtype=float)


def logic_edges(time: np.ndarray, signal: np.ndarray,
                threshold: float = LOGIC_THRESHOLD) -> Tuple[np.ndarray, np.ndarray]:
    """
    Locate threshold crossings of a sampled waveform.

    Crossing instants are linearly interpolated between the two samples
    that straddle the threshold.

    Returns
    -------
    tuple of np.ndarray
        ``(rising, falling)`` crossing times in seconds.
    """
    time = np.asarray(time, dtype=float)
    signal = np.asarray(signal, dtype=float)
    above = signal > threshold

    def crossings(idx):
        s0, s1 = signal[idx], signal[idx + 1]
        frac = (threshold - s0) / (s1 - s0)
        return time[idx] + frac * (time[idx + 1] - time[idx])

    rising = np.where(~above[:-1] & above[1:])[0]
    falling = np.where(above[:-1] & ~above[1:])[0]
    return crossings(rising), crossings(falling)


def _analysis_window(time, fsw, cycles_to_analyze):
    dt = time[1] - time[0] if time.size > 1 else 0.0
    record_end = time[-1] + dt
    start_time = record_end - cycles_to_analyze / fsw
    if start_time < time[0] - 0.5 * dt:
        actual_cycles = (record_end - time[0]) * fsw
        warnings.warn(
            f"Requested {cycles_to_analyze} cycles for analysis, but the record "
            f"only contains ~{actual_cycles:.1f} cycles. Using full record.",
            RuntimeWarning
        )
        return slice(None, None)
    return slice(int(np.searchsorted(time, start_time - 0.5 * dt)), None)


def measure_duty(time: np.ndarray, signal: np.ndarray, fsw: float,
                 cycles_to_analyze: int = 1, threshold: float = LOGIC_THRESHOLD) -> float:
    """
    Fraction of time `signal` is above `threshold` over the last whole cycles.

    Each sample is weighted by the time until the next one, so the
    non-uniform time points of an ngspice transient are handled as well as
    the fixed grid of ``simulate_behavioral``. The record is assumed to end
    on a cycle boundary.
    """
    time = np.asarray(time, dtype=float)
    if time.size < 2:
        warnings.warn("Insufficient data points for duty cycle measurement", RuntimeWarning)
        return np.nan
    window = _analysis_window(time, fsw, cycles_to_analyze)
    t = time[window]
    high = np.asarray(signal, dtype=float)[window] > threshold
    if t.size == 0:
        return np.nan
    # The last sample holds for one more step
    widths = np.diff(np.append(t, t[-1] + (time[-1] - time[-2])))
    return float(np.sum(widths[high]) / np.sum(widths))


def measure_period(time: np.ndarray, signal: np.ndarray,
                   threshold: float = LOGIC_THRESHOLD) -> float:
    """Mean spacing of rising edges, or np.nan with a warning if fewer than two exist."""
    rising, _ = logic_edges(time, signal, threshold)
    if rising.size < 2:
        warnings.warn(
            f"Found {rising.size} rising edge(s); at least two are needed to measure a period.",
            RuntimeWarning
        )
        return np.nan
    return float(np.mean(np.diff(rising)))


def measure_propagation_delay(time: np.ndarray, vin: np.ndarray, vout: np.ndarray,
                              threshold_in: float = LOGIC_THRESHOLD,
                              threshold_out: float = LOGIC_THRESHOLD,
                              rising: bool = True) -> float:
    """
    50 %-to-50 % delay between the first input edge and the output edge that follows it.

    Parameters
    ----------
    time : np.ndarray
        Simulation time array
    vin, vout : np.ndarray
        Input and output waveforms
    threshold_in, threshold_out : float
        Crossing levels, normally the half-swing points of each waveform
    rising : bool
        Measure the rising (default) or falling transition

    Returns
    -------
    float
        Delay in seconds, or np.nan if either edge is missing
    """
    pick = 0 if rising else 1
    in_edges = logic_edges(time, vin, threshold_in)[pick]
    out_edges = logic_edges(time, vout, threshold_out)[pick]
    if in_edges.size == 0:
        warnings.warn("No input transition found for propagation delay", RuntimeWarning)
        return np.nan
    following = out_edges[out_edges >= in_edges[0]]
    if following.size == 0:
        warnings.warn(
            f"No output transition after input edge at t={in_edges[0]:.3e}s "
            f"(threshold={threshold_out}V). Output may be held by UVLO.",
            RuntimeWarning
        )
        return np.nan
    return float(following[0] - in_edges[0])


def measure_dead_times(time: np.ndarray, c1: np.ndarray, c2: np.ndarray,
                       threshold: float = LOGIC_THRESHOLD) -> np.ndarray:
    """
    Intervals between one output's falling edge and the other's next rising edge.

    Returns
    -------
    np.ndarray
        One gap per rising edge that is preceded by a falling edge of the
        opposite output, in seconds.
    """
    rise1, fall1 = logic_edges(time, c1, threshold)
    rise2, fall2 = logic_edges(time, c2, threshold)
    gaps = []
    for rises, falls in ((rise1, fall2), (rise2, fall1)):
        for r in rises:
            before = falls[falls <= r]
            if before.size:
                gaps.append(r - before[-1])
    return np.sort(np.asarray(gaps, dtype=float))


def count_overlaps(c1: np.ndarray, c2: np.ndarray, threshold: float = LOGIC_THRESHOLD) -> int:
    """Number of samples where both signals are high."""
    both = (np.asarray(c1) > threshold) & (np.asarray(c2) > threshold)
    return int(np.count_nonzero(both))


def analyze(analysis: Any,
            fsw: float,
            TimeStep: float,
            SimCycles: int,
            return_arrays: bool = False,
            cycles_to_analyze: int = 2,
            threshold: float = LOGIC_THRESHOLD) -> Dict[str, Any]:
    """
    Analyze the results of a control-chain transient.

    Extracts the modulator, dead-time and gate-driver waveforms and
    calculates timing indicators. Optionally returns the full waveform
    arrays.

    Parameters
    ----------
    analysis : dict or PySpice waveform object
        Result of ``simulate_behavioral`` on a ``ControlChain`` or of
        ``simulate`` on a circuit from ``build_control_chain``.
    fsw : float
        Switching frequency in Hz.
    TimeStep : float
        Simulation time step in seconds.
    SimCycles : int
        Number of full switching cycles simulated.
    return_arrays : bool, optional
        If True, includes the waveform arrays in the returned dictionary.
    cycles_to_analyze : int, optional
        Number of cycles at the end of the record to analyze. Default 2.
    threshold : float, optional
        Logic decision level (V). Default 2.5.

    Returns
    -------
    dict
        Scalar metrics:
        - 'D': modulator duty cycle
        - 'D1', 'D2': dead-time generator output duty cycles
        - 'DL': low-side gate duty cycle
        - 'period': mean modulator period (s)
        - 'deadTimeMin', 'deadTimeMean': non-overlap intervals (s)
        - 'overlaps': number of samples with c1 and c2 both high
        If `return_arrays` is True, also 'time', 'c', 'c1', 'c2', 'gl', 'gh'
        and 'ramp'.
    """

    if fsw <= 0:
        raise ValueError(f"Switching frequency must be positive, got {fsw}")
    if TimeStep <= 0:
        raise ValueError(f"Time step must be positive, got {TimeStep}")
    if SimCycles < 1:
        raise ValueError(f"SimCycles must be >= 1, got {SimCycles}")
    if cycles_to_analyze < 1:
        raise ValueError(f"cycles_to_analyze must be >= 1, got {cycles_to_analyze}")

    required_signals = ['time', 'c', 'c1', 'c2', 'gl', 'gh', 'ramp']
    validate_analysis_signals(analysis, required_signals)

    time = get_signal(analysis, 'time')
    c = get_signal(analysis, 'c')
    c1 = get_signal(analysis, 'c1')
    c2 = get_signal(analysis, 'c2')
    gl = get_signal(analysis, 'gl')
    gh = get_signal(analysis, 'gh')
    ramp = get_signal(analysis, 'ramp')

    # Low-side gate swings between its rails; decide at mid-swing
    gl_threshold = 0.5 * (np.max(gl) + np.min(gl)) if gl.size else threshold

    gaps = measure_dead_times(time, c1, c2, threshold)
    if gaps.size == 0:
        warnings.warn("No complementary transitions found for dead time measurement",
                      RuntimeWarning)

    metrics = {
        'D': measure_duty(time, c, fsw, cycles_to_analyze, threshold),
        'D1': measure_duty(time, c1, fsw, cycles_to_analyze, threshold),
        'D2': measure_duty(time, c2, fsw, cycles_to_analyze, threshold),
        'DL': measure_duty(time, gl, fsw, cycles_to_analyze, gl_threshold)
              if np.ptp(gl) > 0 else 0.0,
        'period': measure_period(time, c, threshold),
        'deadTimeMin': float(np.min(gaps)) if gaps.size else np.nan,
        'deadTimeMean': float(np.mean(gaps)) if gaps.size else np.nan,
        'overlaps': count_overlaps(c1, c2, threshold),
    }

    if return_arrays:
        arrays = {
            'time': time,
            'c': c,
            'c1': c1,
            'c2': c2,
            'gl': gl,
            'gh': gh,
            'ramp': ramp,
        }
        return {**metrics, **arrays}
    else:
        return metrics
