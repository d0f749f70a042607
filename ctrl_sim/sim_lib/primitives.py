import math

LOGIC_HIGH = 5.0
LOGIC_THRESHOLD = 2.5
RAMP_RISE_FRACTION = 0.99

# Relative tolerance used to snap sampled times onto period boundaries
_PHASE_EPS = 1e-9


def logic(v, threshold=LOGIC_THRESHOLD) -> bool:
    """True when `v` is above the logic decision threshold."""
    return v > threshold


def comparator(vp, vn, vhigh=LOGIC_HIGH) -> float:
    """Ideal comparator: `vhigh` whenever vp >= vn, 0 V otherwise."""
    return vhigh if vp >= vn else 0.0


def buffer(v, vhigh=LOGIC_HIGH) -> float:
    return vhigh if logic(v) else 0.0


def inverter(v, vhigh=LOGIC_HIGH) -> float:
    return 0.0 if logic(v) else vhigh


def or_gate(a, b, vhigh=LOGIC_HIGH) -> float:
    return vhigh if (logic(a) or logic(b)) else 0.0


def translate(a, b, ref, gain=1.0) -> float:
    """
    Ideal floating-ground translator.

    Re-references the difference ``a - b`` onto ``ref`` without loading
    either side: ``gain * (a - b) + ref``.
    """
    return gain * (a - b) + ref


def cycle_phase(t: float, period: float):
    """
    Split a time instant into its period index and phase.

    Parameters
    ----------
    t : float
        Simulation time in seconds.
    period : float
        Period in seconds.

    Returns
    -------
    tuple
        ``(index, phase)`` where ``phase`` lies in [0, 1). Instants within
        a relative 1e-9 of a boundary are counted in the new period.
    """
    cycles = t / period
    index = math.floor(cycles + _PHASE_EPS)
    phase = cycles - index
    if phase < 0.0:
        phase = 0.0
    return index, phase


def pulse(t, period, width, delay=0.0, v1=0.0, v2=LOGIC_HIGH) -> float:
    """Periodic rectangular source: `v2` during [delay, delay + width) of each period."""
    if width <= 0.0:
        return v1
    _, phase = cycle_phase(t - delay, period)
    return v2 if phase * period < width else v1


def sawtooth(t, period, v_low, v_high, rise_fraction=RAMP_RISE_FRACTION) -> float:
    """Linear rise from `v_low` to `v_high` over `rise_fraction` of the period, linear reset after."""
    _, phase = cycle_phase(t, period)
    span = v_high - v_low
    if phase < rise_fraction:
        return v_low + span * phase / rise_fraction
    return v_high - span * (phase - rise_fraction) / (1.0 - rise_fraction)


class SRLatch:
    """
    Set/reset latch with set-dominant priority.

    The output for the current instant follows SET first, then RESET,
    otherwise it holds the last committed bit. ``peek`` evaluates that rule
    without touching the stored bit; ``update`` commits it.
    """

    def __init__(self, q=False):
        self.q = bool(q)

    def peek(self, set_, reset) -> bool:
        if set_:
            return True
        if reset:
            return False
        return self.q

    def update(self, set_, reset) -> bool:
        self.q = self.peek(set_, reset)
        return self.q

    def reset(self):
        self.q = False


class RCLag:
    """Symmetric first-order lag with time constant `tau`, zero-order-hold input."""

    def __init__(self, tau: float, v0: float = 0.0):
        if tau < 0:
            raise ValueError(f"Time constant must be non-negative, got {tau}")
        self.tau = tau
        self.v = v0

    def advance(self, vin: float, dt: float) -> float:
        if self.tau == 0.0:
            self.v = vin
        else:
            self.v = vin + (self.v - vin) * math.exp(-dt / self.tau)
        return self.v

    def reset(self, v0: float = 0.0):
        self.v = v0


class DiodeRCLag(RCLag):
    """
    Asymmetric lag: charges through R, discharges through an ideal diode.

    The capacitor voltage can never sit above its driving input, so a
    falling input is followed instantly while a rising input is delayed by
    the RC charge.
    """

    def value(self, vin: float) -> float:
        return min(self.v, vin)

    def advance(self, vin: float, dt: float) -> float:
        start = self.value(vin)
        if vin > start and self.tau > 0.0:
            self.v = vin + (start - vin) * math.exp(-dt / self.tau)
        else:
            self.v = vin
        return self.v


class SquareLawSwitch:
    """
    Switch/transistor current model parameterised by threshold `vt` and
    transconductance `kp` (A/V^2).
    """

    def __init__(self, vt: float, kp: float):
        self.vt = vt
        self.kp = kp

    def current(self, vgs: float, vds: float) -> float:
        vov = vgs - self.vt
        if vov <= 0.0:
            return 0.0
        sign = 1.0 if vds >= 0 else -1.0
        vds = abs(vds)
        if vds < vov:
            return sign * self.kp * (vov * vds - 0.5 * vds ** 2)
        return sign * 0.5 * self.kp * vov ** 2
