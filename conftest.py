import pytest

from ctrl_sim.sim_lib.primitives import pulse


@pytest.fixture
def square_wave():
    """Factory for 0/5 V logic sources: square_wave(fsw, duty) -> callable of t."""
    def make(fsw, duty):
        period = 1.0 / fsw
        return lambda t: pulse(t, period, duty * period)
    return make


@pytest.fixture
def step():
    """Factory for a 0 -> v step at t0, optionally back to 0 at t1."""
    def make(t0, v=5.0, t1=None):
        def source(t):
            if t1 is not None and t >= t1:
                return 0.0
            return v if t >= t0 else 0.0
        return source
    return make
