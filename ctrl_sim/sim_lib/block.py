from abc import ABC, abstractmethod
from typing import Dict


class Block(ABC):
    """
    Base class for the behavioural control blocks.

    A block exposes two functions to the external time stepper:

    - ``outputs(t, **inputs)`` evaluates the output ports at instant `t`
      from the current inputs and the committed state. It never mutates the
      state, so repeated calls with the same arguments agree.
    - ``update(t, dt, **inputs)`` commits the discrete state for instant `t`
      and advances the continuous state to ``t + dt`` with the inputs held.

    Subclasses list their ordered port names in ``PORTS``; ``INPUTS`` and
    ``OUTPUTS`` split them by direction.
    """

    PORTS = ()
    INPUTS = ()
    OUTPUTS = ()

    def __init__(self, params):
        self.params = params
        self.reset()

    @abstractmethod
    def reset(self):
        """Return the internal state to its power-on condition."""

    @abstractmethod
    def outputs(self, t: float, **inputs) -> Dict[str, float]:
        pass

    @abstractmethod
    def update(self, t: float, dt: float, **inputs):
        pass

    def step(self, t: float, dt: float, **inputs) -> Dict[str, float]:
        out = self.outputs(t, **inputs)
        self.update(t, dt, **inputs)
        return out

    def __repr__(self):
        return f"{type(self).__name__}({self.params!r})"
