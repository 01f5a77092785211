"""meshsim - mesh-current circuit simulator on JAX.

Lumped linear circuits (R, L, C, current sources) are described by mesh
(loop) currents and advanced in fixed time steps:
    - Inductors: backward Euler companion model
    - Capacitors: stored voltage as a known term, forward Euler update
    - Current sources to ground force their mesh current directly

Usage:
    from meshsim import Circuit, GND, Resistor, Inductor, Capacitor, CurrentSource
"""

from .components import (
    GND,
    Mesh,
    Component,
    Resistor,
    Inductor,
    Capacitor,
    CurrentSource,
    validate_component,
)
from .solver import solve_linear_system, pivot_tolerance, SingularSystemError, PIVOT_TOLERANCE
from .simulator import SimState, LinearSystem, init_state, stamp, step
from .network import (
    Circuit,
    ComponentRef,
    Snapshot,
    Trace,
    StateNotInitializedError,
    StaleStateError,
)
from .logging_config import setup_logging

__version__ = "0.1.0"
__all__ = [
    # Components
    "GND",
    "Mesh",
    "Component",
    "Resistor",
    "Inductor",
    "Capacitor",
    "CurrentSource",
    "validate_component",
    # Circuit
    "Circuit",
    "ComponentRef",
    "Snapshot",
    "Trace",
    # Functional core
    "SimState",
    "LinearSystem",
    "init_state",
    "stamp",
    "step",
    "solve_linear_system",
    "pivot_tolerance",
    # Errors
    "SingularSystemError",
    "StateNotInitializedError",
    "StaleStateError",
    "PIVOT_TOLERANCE",
    "setup_logging",
    "__version__",
]
