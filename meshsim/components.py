"""Circuit component variants (immutable, mesh-current form).

Every component connects two meshes. Either endpoint may be ground (GND),
the reference loop whose current is always zero.
"""

from __future__ import annotations
import math
from typing import NamedTuple, Callable, Optional, Union

# Ground has no mesh index; endpoints are either a mesh index or GND.
GND = None

Mesh = Optional[int]


class Resistor(NamedTuple):
    """
    Ohmic resistor between two meshes.

    Example:
        Resistor(0, 1, 10.0)      # 10 Ω shared by mesh 0 and mesh 1
        Resistor(1, GND, 30.0)    # 30 Ω only in mesh 1
    """
    mesh1: Mesh
    mesh2: Mesh
    resistance: float  # Ohms
    name: str = ""

    kind = "R"


class Inductor(NamedTuple):
    """Inductor, discretised with backward Euler (companion model L/dt)."""
    mesh1: Mesh
    mesh2: Mesh
    inductance: float  # Henrys
    name: str = ""

    kind = "L"


class Capacitor(NamedTuple):
    """
    Capacitor with an initial voltage.

    The voltage is positive when mesh1 current charges it.

    `voltage` is the voltage at t = 0 and never changes: components are
    immutable. Read the simulated voltage after a step with
    Circuit.voltage(ref), using the ref returned by add_component
    (it is stored in SimState.cap_voltages).

    Example:
        c1 = circuit.add_component(Capacitor(1, GND, 1.0, voltage=5.0))
        circuit.step()
        circuit.voltage(c1)   # evolved voltage, not 5.0
    """
    mesh1: Mesh
    mesh2: Mesh
    capacitance: float  # Farads
    voltage: float = 0.0  # initial voltage only (Volts); see Circuit.voltage()
    name: str = ""

    kind = "C"


class CurrentSource(NamedTuple):
    """
    Current source driven by a function of time.

    With one grounded endpoint the source forces the other mesh's current:
    current(t) on mesh1, -current(t) on mesh2.
    """
    mesh1: Mesh
    mesh2: Mesh
    current: Callable[[float], float]
    name: str = ""

    kind = "I"


Component = Union[Resistor, Inductor, Capacitor, CurrentSource]

COMPONENT_TYPES = (Resistor, Inductor, Capacitor, CurrentSource)


def _check_mesh(mesh, label: str) -> None:
    if mesh is GND:
        return
    if isinstance(mesh, bool) or not isinstance(mesh, int):
        raise TypeError(f"{label} must be a mesh index (int) or GND, got {mesh!r}")
    if mesh < 0:
        raise ValueError(f"{label} must be >= 0 (use GND for ground), got {mesh}")


def _check_value(value, label: str, allow_zero: bool) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{label} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{label} must be finite, got {value}")
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValueError(f"{label} must be {bound}, got {value}")


def validate_component(component: Component) -> None:
    """
    Check endpoints and parameter values of a component.

    Raises:
        TypeError: unknown component type, bad endpoint or parameter type
        ValueError: negative mesh index or out-of-range parameter
    """
    if not isinstance(component, COMPONENT_TYPES):
        raise TypeError(f"Unknown component type: {type(component).__name__}")

    _check_mesh(component.mesh1, "mesh1")
    _check_mesh(component.mesh2, "mesh2")

    if isinstance(component, Resistor):
        _check_value(component.resistance, "resistance", allow_zero=True)
    elif isinstance(component, Inductor):
        _check_value(component.inductance, "inductance", allow_zero=False)
    elif isinstance(component, Capacitor):
        _check_value(component.capacitance, "capacitance", allow_zero=False)
        if not isinstance(component.voltage, (int, float)) or isinstance(component.voltage, bool):
            raise TypeError(f"voltage must be a number, got {component.voltage!r}")
    elif isinstance(component, CurrentSource):
        if not callable(component.current):
            raise TypeError("current must be a callable of time")
