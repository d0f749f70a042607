import ast
import math
import numbers
import operator
from dataclasses import dataclass, fields, replace as _replace
from decimal import Decimal
from typing import Any, Callable, Dict

# Scaling between Td and the dead-time lag: R*C*0.693 ~ R*C*ln(2)
DEAD_TIME_SCALE = 0.693

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_FUNCTIONS = {'exp': math.exp, 'log': math.log, 'sqrt': math.sqrt}
_CONSTANTS = {'pi': math.pi}


class ParameterError(ValueError):
    """Raised when a parameter record violates its constraints."""


def _require(condition: bool, message: str):
    if not condition:
        raise ParameterError(message)


def _is_number(value) -> bool:
    return isinstance(value, (numbers.Real, Decimal)) and not isinstance(value, bool)


def evaluate_expression(expression: str, lookup: Callable[[str], float]) -> float:
    """
    Evaluate an arithmetic parameter expression such as ``'Td/(0.693*R)'``.

    Numbers, ``+ - * / **``, unary signs, parentheses, ``exp``, ``log``,
    ``sqrt`` and ``pi`` are understood; every other name is resolved
    through `lookup`. Anything else raises ParameterError.
    """
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except SyntaxError as e:
        raise ParameterError(f"Invalid parameter expression {expression!r}: {e.msg}") from None

    def visit(node):
        if isinstance(node, ast.Expression):
            return visit(node.body)
        if isinstance(node, ast.Constant) and _is_number(node.value):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
            return _BIN_OPS[type(node.op)](visit(node.left), visit(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](visit(node.operand))
        if isinstance(node, ast.Name):
            if node.id in _CONSTANTS:
                return _CONSTANTS[node.id]
            return lookup(node.id)
        if (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
                and node.func.id in _FUNCTIONS and len(node.args) == 1 and not node.keywords):
            return _FUNCTIONS[node.func.id](visit(node.args[0]))
        raise ParameterError(f"Unsupported syntax in parameter expression {expression!r}")

    try:
        return visit(tree)
    except ParameterError:
        raise
    except (ArithmeticError, ValueError) as e:
        raise ParameterError(f"Cannot evaluate parameter expression {expression!r}: {e}") from None


class _ParameterSet:
    """
    Common behaviour for the frozen per-component parameter records.

    A field may be given as a number or as an arithmetic expression string
    over the record's other fields, e.g. ``Tdelay='2*Imax*10e-9'``. Fields
    that are not overridden take their defaults. Expressions are resolved
    to floats before validation and kept, so ``replace`` recomputes them
    from the new values of their dependencies.
    """

    component = ''

    def __post_init__(self):
        raw = {f.name: getattr(self, f.name) for f in fields(self)}
        for name, value in self._resolve(raw).items():
            object.__setattr__(self, name, value)
        object.__setattr__(self, '_expressions',
                           {k: v for k, v in raw.items() if isinstance(v, str)})
        self.validate()

    def _resolve(self, raw: Dict[str, Any]) -> Dict[str, float]:
        resolved = {}

        def value_of(name, chain=()):
            if name in resolved:
                return resolved[name]
            _require(name in raw,
                     f"{self.component}: unknown parameter '{name}' in expression "
                     f"(available: {', '.join(raw)})")
            _require(name not in chain,
                     f"{self.component}: circular parameter expression "
                     f"{' -> '.join(chain + (name,))}")
            value = raw[name]
            if isinstance(value, str):
                value = evaluate_expression(value, lambda ref: value_of(ref, chain + (name,)))
            _require(_is_number(value) and math.isfinite(value),
                     f"{self.component}: parameter {name} must be a finite number, got {raw[name]!r}")
            resolved[name] = float(value)
            return resolved[name]

        for name in raw:
            value_of(name)
        return resolved

    def validate(self):
        pass

    @classmethod
    def from_dict(cls, params: Dict[str, Any]):
        """Build a record from a parameter dict; keys the record does not know are ignored."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in params.items() if k in names})

    @property
    def expressions(self) -> Dict[str, str]:
        """Fields that were given as expressions, with their source text."""
        return dict(self._expressions)

    def replace(self, **overrides):
        return _replace(self, **{**self._expressions, **overrides})

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class GateDriverParams(_ParameterSet):
    """
    Gate driver parameters.

    Imax : peak output current at `Vddrated` (A)
    Vuvl : undervoltage-lockout threshold on Vdd - Vss (V)
    IQ : quiescent supply current (A)
    Tdelay : propagation delay (s)
    Vddrated : supply voltage at which `Imax` is specified (V)
    Vt : threshold voltage of the output switches (V)
    Rdelay : resistance of the delay RC (Ohm)
    """
    component = 'GateDriver'

    Imax: float = 3.0
    Vuvl: float = 9.0
    IQ: float = 1e-3
    Tdelay: float = 30e-9
    Vddrated: float = 12.0
    Vt: float = 1.0
    Rdelay: float = 1e3

    def validate(self):
        _require(self.Imax > 0, f"GateDriver: Imax must be positive, got {self.Imax}")
        _require(self.Vuvl >= 0, f"GateDriver: Vuvl must be non-negative, got {self.Vuvl}")
        _require(self.IQ >= 0, f"GateDriver: IQ must be non-negative, got {self.IQ}")
        _require(self.Tdelay >= 0, f"GateDriver: Tdelay must be non-negative, got {self.Tdelay}")
        _require(self.Rdelay > 0, f"GateDriver: Rdelay must be positive, got {self.Rdelay}")
        _require(self.Vddrated > self.Vt,
                 f"GateDriver: Vddrated ({self.Vddrated}) must exceed Vt ({self.Vt})")

    @property
    def Cdelay(self) -> float:
        """Delay capacitance giving a 2.5 V crossing of a 0-5 V step after `Tdelay`."""
        return self.Tdelay / (self.Rdelay * math.log(2))

    @property
    def tau(self) -> float:
        return self.Rdelay * self.Cdelay

    @property
    def Kp(self) -> float:
        """Output switch transconductance so that Isat(Vddrated) == Imax."""
        return 2.0 * self.Imax / (self.Vddrated - self.Vt) ** 2


def _validate_modulator(p, name):
    _require(p.fs > 0, f"{name}: fs must be positive, got {p.fs}")
    _require(p.Dmin >= 0, f"{name}: Dmin must be >= 0, got {p.Dmin}")
    _require(p.Dmax < 1, f"{name}: Dmax must be < 1, got {p.Dmax}")
    _require(p.Dmin < p.Dmax, f"{name}: Dmin ({p.Dmin}) must be < Dmax ({p.Dmax})")
    _require(p.Voffset >= 0, f"{name}: Voffset must be >= 0, got {p.Voffset}")


@dataclass(frozen=True)
class PWMParams(_ParameterSet):
    """Trailing-edge PWM parameters: fs (Hz), VM ramp amplitude (V), Dmin, Dmax, Voffset (V)."""
    component = 'TrailingEdgePWM'

    fs: float = 100e3
    VM: float = 1.0
    Dmin: float = 0.0
    Dmax: float = 0.9
    Voffset: float = 0.0

    def validate(self):
        _validate_modulator(self, self.component)
        _require(self.VM > 0, f"TrailingEdgePWM: VM must be positive, got {self.VM}")
        _require(self.Voffset + self.VM < 5.0,
                 f"TrailingEdgePWM: Voffset + VM must stay below 5 V, got {self.Voffset + self.VM}")

    @property
    def period(self) -> float:
        return 1.0 / self.fs


@dataclass(frozen=True)
class DeadTimeParams(_ParameterSet):
    """Dead-time generator parameters: Td (s) and the fixed lag resistance R (Ohm)."""
    component = 'DeadTimeGenerator'

    Td: float = 100e-9
    R: float = 1e3

    def validate(self):
        _require(self.Td >= 0, f"DeadTimeGenerator: Td must be >= 0, got {self.Td}")
        _require(self.R > 0, f"DeadTimeGenerator: R must be positive, got {self.R}")

    @property
    def C(self) -> float:
        # Td/693 for the default 1 kOhm
        return self.Td / (DEAD_TIME_SCALE * self.R)

    @property
    def tau(self) -> float:
        return self.R * self.C


@dataclass(frozen=True)
class CPMParams(_ParameterSet):
    """Peak current-mode modulator parameters: fs, Va ramp (V), Vcmax, Voffset (V), Dmin, Dmax."""
    component = 'CPMModulator'

    fs: float = 100e3
    Va: float = 0.0
    Vcmax: float = 5.0
    Voffset: float = 0.0
    Dmin: float = 0.0
    Dmax: float = 0.9

    def validate(self):
        _validate_modulator(self, self.component)
        _require(self.Va >= 0, f"CPMModulator: Va must be >= 0, got {self.Va}")
        _require(self.Vcmax > 0, f"CPMModulator: Vcmax must be positive, got {self.Vcmax}")

    @property
    def period(self) -> float:
        return 1.0 / self.fs
