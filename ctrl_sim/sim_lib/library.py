from .cpm import CPMModulator
from .dead_time import DeadTimeGenerator
from .gate_driver import GateDriver
from .params import CPMParams, DeadTimeParams, GateDriverParams, PWMParams
from .pwm import TrailingEdgePWM

# Component type name -> (block class, parameter record)
COMPONENTS = {
    'GateDriver': (GateDriver, GateDriverParams),
    'TrailingEdgePWM': (TrailingEdgePWM, PWMParams),
    'DeadTimeGenerator': (DeadTimeGenerator, DeadTimeParams),
    'CPMModulator': (CPMModulator, CPMParams),
}

PORTS = {name: block.PORTS for name, (block, _) in COMPONENTS.items()}


def instantiate(type_name, params=None, **overrides):
    """
    Create a block by component type name.

    `params` may be a parameter record or a parameter dict; keyword
    overrides are applied on top. The record is validated before the
    block is built.
    """
    try:
        block_cls, params_cls = COMPONENTS[type_name]
    except KeyError:
        raise ValueError(
            f"Unknown component type '{type_name}'. Available: {', '.join(COMPONENTS)}"
        ) from None
    if params is None:
        record = params_cls(**overrides)
    elif isinstance(params, params_cls):
        record = params.replace(**overrides) if overrides else params
    else:
        record = params_cls.from_dict({**params, **overrides})
    return block_cls(record)
