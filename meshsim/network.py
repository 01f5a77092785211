"""Circuit: component collection, state ownership and stepping."""

from __future__ import annotations
import logging
from typing import NamedTuple, Sequence

import jax.numpy as jnp
from jax import Array

from .components import GND, Mesh, Component, Capacitor, CurrentSource, validate_component
from .simulator import SimState, init_state, forced_mesh, step as _step

logger = logging.getLogger(__name__)


class StateNotInitializedError(RuntimeError):
    """Raised when the circuit is used before initialize_state()."""


class StaleStateError(RuntimeError):
    """Raised when components were added after initialize_state()."""


class ComponentRef(NamedTuple):
    """Reference to a component for later readout."""
    name: str
    kind: str   # "R", "L", "C", "I"
    index: int  # position among components of the same kind


class Snapshot(NamedTuple):
    """Read-only view of the circuit after a step."""
    time: Array           # scalar
    mesh_currents: Array  # (total_meshes,)
    cap_voltages: Array   # (n_caps,)


class Trace(NamedTuple):
    """Stacked snapshots from Circuit.run()."""
    time: Array           # (n_steps,)
    mesh_currents: Array  # (n_steps, total_meshes)
    cap_voltages: Array   # (n_steps, n_caps)


class Circuit:
    """
    Mesh-current circuit driven in fixed time steps.

    Usage:
        circuit = Circuit(time_step=0.1)
        circuit.add_component(CurrentSource(0, GND, lambda t: 1.0))
        circuit.add_component(Resistor(0, 1, 10.0))
        c1 = circuit.add_component(Capacitor(1, GND, 1.0))
        circuit.initialize_state()
        for _ in range(10):
            circuit.step()
        v = circuit.voltage(c1)
    """

    def __init__(self, time_step: float):
        if isinstance(time_step, bool) or not isinstance(time_step, (int, float)):
            raise TypeError(f"time_step must be a number, got {time_step!r}")
        if not time_step > 0:
            raise ValueError(f"time_step must be > 0, got {time_step}")

        self.time_step = float(time_step)
        self.total_meshes = 0
        self.state: SimState | None = None
        self._components: list[Component] = []
        self._refs: dict[str, ComponentRef] = {}
        self._kind_counts: dict[str, int] = {}
        self._stale = False

    @property
    def components(self) -> tuple[Component, ...]:
        """Components in insertion order."""
        return tuple(self._components)

    def add_component(self, component: Component) -> ComponentRef:
        """
        Append a component and grow total_meshes to cover its endpoints.

        Returns:
            ComponentRef for reading results (e.g. capacitor voltage)
        """
        validate_component(component)

        kind = component.kind
        index = self._kind_counts.get(kind, 0)
        name = component.name
        if not name:
            # First free "<kind><n>", skipping names the user already took
            n = index + 1
            while f"{kind}{n}" in self._refs:
                n += 1
            name = f"{kind}{n}"
        if name in self._refs:
            raise ValueError(f"Component name already in use: {name}")
        component = component._replace(name=name)

        self._components.append(component)
        self._kind_counts[kind] = index + 1
        for mesh in (component.mesh1, component.mesh2):
            if mesh is not GND and mesh + 1 > self.total_meshes:
                self.total_meshes = mesh + 1

        if self.state is not None:
            self._stale = True

        ref = ComponentRef(name, kind, index)
        self._refs[name] = ref
        return ref

    def initialize_state(self, mesh_currents: Sequence[float] | None = None) -> SimState:
        """
        Create the simulation state. Call after the last add_component().

        Args:
            mesh_currents: Optional initial mesh currents (length total_meshes)

        Returns:
            The initial SimState (also stored as self.state)
        """
        for comp in self._components:
            if isinstance(comp, CurrentSource) and forced_mesh(comp) is GND:
                logger.warning(
                    "Current source %s (meshes %s, %s) does not connect a mesh to ground; "
                    "it has no effect on the simulation",
                    comp.name, comp.mesh1, comp.mesh2,
                )

        self.state = init_state(self._components, self.total_meshes, mesh_currents)
        self._stale = False
        logger.info(
            "Initialized state: %d meshes, %d components, dt=%g",
            self.total_meshes, len(self._components), self.time_step,
        )
        return self.state

    def _require_state(self) -> SimState:
        if self.state is None:
            raise StateNotInitializedError("Call initialize_state() before stepping or reading results")
        if self._stale:
            raise StaleStateError(
                "Components were added after initialize_state(); call it again"
            )
        return self.state

    def step(self) -> SimState:
        """
        Advance the simulation by time_step.

        Raises:
            StateNotInitializedError, StaleStateError: misuse
            SingularSystemError: the mesh system cannot be solved
        """
        state = self._require_state()
        self.state = _step(self._components, state, self.time_step)
        return self.state

    def run(self, n_steps: int) -> Trace:
        """Step n_steps times and return the stacked snapshots."""
        if n_steps < 0:
            raise ValueError(f"n_steps must be >= 0, got {n_steps}")
        self._require_state()

        snapshots = []
        for _ in range(n_steps):
            self.step()
            snapshots.append(self.snapshot())

        if not snapshots:
            n_caps = self.state.cap_voltages.shape[0]
            return Trace(
                time=jnp.zeros(0),
                mesh_currents=jnp.zeros((0, self.total_meshes)),
                cap_voltages=jnp.zeros((0, n_caps)),
            )
        return Trace(
            time=jnp.stack([s.time for s in snapshots]),
            mesh_currents=jnp.stack([s.mesh_currents for s in snapshots]),
            cap_voltages=jnp.stack([s.cap_voltages for s in snapshots]),
        )

    def snapshot(self) -> Snapshot:
        """Current time, mesh currents and capacitor voltages."""
        state = self._require_state()
        return Snapshot(
            time=state.time,
            mesh_currents=state.mesh_currents,
            cap_voltages=state.cap_voltages,
        )

    def current(self, mesh: Mesh) -> Array:
        """Current circulating in a mesh (ground is 0)."""
        state = self._require_state()
        if mesh is GND:
            return jnp.array(0.0)
        # jax clamps out-of-range indices instead of raising
        if not 0 <= mesh < state.total_meshes:
            raise IndexError(f"Mesh {mesh} out of range (total meshes: {state.total_meshes})")
        return state.mesh_currents[mesh]

    def voltage(self, component: ComponentRef) -> Array:
        """
        Voltage across a capacitor.

        Raises:
            KeyError: component is not part of this circuit
            ValueError: component is not a capacitor
        """
        state = self._require_state()
        if component.name not in self._refs:
            raise KeyError(f"Unknown component: {component.name}")
        ref = self._refs[component.name]
        if ref.kind != Capacitor.kind:
            raise ValueError(f"Voltage readout requires a capacitor, got kind {ref.kind!r}")
        return state.cap_voltages[ref.index]
