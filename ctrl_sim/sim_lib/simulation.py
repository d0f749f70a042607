import numpy as np
from typing import Callable, Dict, Union

Source = Union[float, Callable[[float], float], np.ndarray]


def _resolve_sources(block, inputs: Dict[str, Source], n: int):
    """Check that every input port of `block` is driven and normalise the sources."""
    missing = [name for name in block.INPUTS if name not in inputs]
    if missing:
        raise ValueError(
            f"Missing input sources for {type(block).__name__}: {', '.join(missing)}"
        )
    resolved = {}
    for name in block.INPUTS:
        source = inputs[name]
        if callable(source):
            resolved[name] = source
        elif np.ndim(source) == 0:
            resolved[name] = float(source)
        else:
            arr = np.asarray(source, dtype=float)
            if arr.shape != (n,):
                raise ValueError(
                    f"Input array for '{name}' has shape {arr.shape}, expected ({n},)"
                )
            resolved[name] = arr
    return resolved


def simulate_behavioral(block, fsw, TimeStep, SimCycles, inputs=None,
                        TimeStartSave=0, reset=True) -> Dict[str, np.ndarray]:
    """
    Run a fixed-step transient of a behavioural block.

    Parameters
    ----------
    block : Block
        Block (or chain of blocks) exposing ``outputs`` and ``update``.
    fsw : float
        Switching frequency in Hz, used to size the run.
    TimeStep : float
        Simulation time step in seconds.
    SimCycles : int
        Number of switching cycles to simulate.
    inputs : dict
        Source per input port: a constant, a callable of time, or an array
        with one value per time point.
    TimeStartSave : float, optional
        Time to start saving results in switching cycles (default is 0).
    reset : bool, optional
        Reset the block state before running (default is True).

    Returns
    -------
    dict
        ``'time'`` plus one NumPy array per input and output port.
    """
    if fsw <= 0:
        raise ValueError(f"Switching frequency must be positive, got {fsw}")
    if TimeStep <= 0:
        raise ValueError(f"Time step must be positive, got {TimeStep}")
    if SimCycles < 1:
        raise ValueError(f"SimCycles must be >= 1, got {SimCycles}")

    n = int(round(SimCycles / (fsw * TimeStep)))
    time = np.arange(n) * TimeStep
    sources = _resolve_sources(block, inputs or {}, n)

    if reset:
        block.reset()

    records: Dict[str, list] = {}
    for k, t in enumerate(time):
        t = float(t)
        values = {}
        for name, source in sources.items():
            if callable(source):
                values[name] = float(source(t))
            elif isinstance(source, np.ndarray):
                values[name] = float(source[k])
            else:
                values[name] = source
        out = block.step(t, TimeStep, **values)
        for name, value in {**values, **out}.items():
            records.setdefault(name, []).append(value)

    start = np.searchsorted(time, TimeStartSave / fsw - 0.5 * TimeStep)
    results = {'time': time[start:]}
    for name, values in records.items():
        results[name] = np.asarray(values)[start:]
    return results


def simulate(circuit, fsw, TimeStep, SimCycles, TimeStartSave=0, show_node_names=False):

    """
    Run a transient simulation of a control-chain circuit with ngspice.

    Parameters
    ----------
    circuit : Circuit
        PySpice Circuit object to be simulated.
    fsw : float
        Switching frequency in Hz.
    TimeStep : float
        Simulation time step in seconds.
    SimCycles : int
        Number of switching cycles to simulate.
    TimeStartSave : float, optional
        Time to start saving results in simulation cycles(default is 0).
    show_node_names : bool, optional
        If True, prints the available node names (default is False).

    Returns
    -------
    analysis : SimulationResult
        Result object containing all node voltages and currents from the simulation.
    """

    TimeEnd = SimCycles * 1 / fsw
    TimeStartSave = TimeStartSave * 1/fsw

    simulator = circuit.simulator(temperature=25, nominal_temperature=25)
    simulator.options(
            method='gear',
            maxord=3,
            reltol=1e-3,        # Relative tolerance
            abstol=1e-9,        # Current absolute tolerance (A)
            vntol=1e-6,         # Voltage absolute tolerance (V)
            itl4=500,           # Newton iterations per timepoint
            plotwinsize=0,       # Disable data compression: keeps raw time points exact
        )

    analysis = simulator.transient(step_time=TimeStep, end_time=TimeEnd, start_time=TimeStartSave,
                                   max_time=TimeStep)

    if show_node_names:
        print("📍 Available Node Names:")
        for key in analysis.nodes:
            print(f"{key}")

    return analysis
