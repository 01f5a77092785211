"""
Time-domain mesh-current simulator.

Each step:
1. Snapshot mesh currents (inductors need the previous instant)
2. Force mesh currents from grounded current sources
3. Map the remaining (free) meshes onto dense rows 0..n_free-1
4. Stamp resistors, inductors and capacitors into A and B
5. Solve A * X = -B and write X back into the free meshes
6. Integrate capacitor voltages with the new currents (forward Euler)
7. Advance time by dt

Inductors use a backward-Euler companion model (L/dt plus a history term).
Capacitors contribute their stored voltage as a known term, lagging one step.
"""

from __future__ import annotations
import logging
from typing import NamedTuple, Sequence

import jax.numpy as jnp
from jax import Array

from .components import GND, Mesh, Component, Resistor, Inductor, Capacitor, CurrentSource
from .solver import solve_linear_system

logger = logging.getLogger(__name__)


class SimState(NamedTuple):
    """
    Immutable simulation state.
    """
    time: Array                    # scalar
    mesh_currents: Array           # (total_meshes,)
    previous_mesh_currents: Array  # (total_meshes,) snapshot taken at the start of a step
    cap_voltages: Array            # (n_caps,) in capacitor insertion order
    total_meshes: int


class LinearSystem(NamedTuple):
    """Per-step accumulator: A (n_free, n_free) and B (n_free,)."""
    a: Array
    b: Array

    @classmethod
    def zeros(cls, n_free: int) -> LinearSystem:
        return cls(a=jnp.zeros((n_free, n_free)), b=jnp.zeros(n_free))


def capacitors(components: Sequence[Component]) -> list[Capacitor]:
    """Capacitors in insertion order (the order of SimState.cap_voltages)."""
    return [comp for comp in components if isinstance(comp, Capacitor)]


def init_state(
    components: Sequence[Component],
    total_meshes: int,
    mesh_currents: Sequence[float] | None = None,
) -> SimState:
    """
    Create the initial state.

    Args:
        components: Components in insertion order
        total_meshes: Number of meshes (one more than the highest mesh index)
        mesh_currents: Optional initial mesh currents, also used as the
            previous-step currents

    Returns:
        SimState at time 0
    """
    if mesh_currents is None:
        currents = jnp.zeros(total_meshes)
    else:
        currents = jnp.asarray(mesh_currents, dtype=jnp.result_type(float))
        if currents.shape != (total_meshes,):
            raise ValueError(
                f"Expected {total_meshes} initial mesh currents, got shape {currents.shape}"
            )

    caps = capacitors(components)
    return SimState(
        time=jnp.array(0.0),
        mesh_currents=currents,
        previous_mesh_currents=currents,
        cap_voltages=jnp.array([float(cap.voltage) for cap in caps]) if caps else jnp.zeros(0),
        total_meshes=total_meshes,
    )


def _mesh_value(values: Array, mesh: Mesh) -> Array:
    """Value stored for a mesh; ground reads as zero."""
    if mesh is GND:
        return jnp.array(0.0, dtype=values.dtype)
    return values[mesh]


# --- Current sources ---

def forced_mesh(source: CurrentSource) -> Mesh:
    """
    Mesh forced by a current source, or GND when it forces nothing.

    Only a source with exactly one grounded endpoint forces a mesh.
    """
    if source.mesh1 is not GND and source.mesh2 is GND:
        return source.mesh1
    if source.mesh1 is GND and source.mesh2 is not GND:
        return source.mesh2
    return GND


def apply_source(source: CurrentSource, mesh_currents: Array, time) -> Array:
    """
    Overwrite the forced mesh current with the source value at `time`.

    The value is negated when the source drives mesh2 (polarity).
    Sources between two meshes, or between ground and ground, leave the
    currents unchanged.
    """
    mesh = forced_mesh(source)
    if mesh is GND:
        return mesh_currents

    value = jnp.asarray(source.current(time), dtype=mesh_currents.dtype)
    if mesh == source.mesh2:
        value = -value
    return mesh_currents.at[mesh].set(value)


def build_free_mesh_map(total_meshes: int, forced: set[int]) -> dict[int, int]:
    """Map each free mesh (ascending) to its dense row index."""
    free_map = {}
    for mesh in range(total_meshes):
        if mesh not in forced:
            free_map[mesh] = len(free_map)
    return free_map


# --- Stamps ---

def _stamp_branch(
    system: LinearSystem,
    mesh: Mesh,
    other: Mesh,
    coeff,
    constant,
    free_map: dict[int, int],
    mesh_currents: Array,
) -> LinearSystem:
    """
    Stamp one endpoint of a two-mesh branch with impedance-like coefficient.

    a[i, i] += coeff, a[i, j] -= coeff for a free partner, or the partner's
    known current folded into b when it is forced. `constant` (if given) is
    added to b[i].
    """
    if mesh is GND or mesh not in free_map:
        return system

    a, b = system
    i = free_map[mesh]
    a = a.at[i, i].add(coeff)

    if other is GND:
        pass
    elif other in free_map:
        j = free_map[other]
        a = a.at[i, j].add(-coeff)
    else:
        # Forced partner: its current is already known
        b = b.at[i].add(-coeff * mesh_currents[other])

    if constant is not None:
        b = b.at[i].add(constant)

    return LinearSystem(a, b)


def _stamp_resistor(comp: Resistor, system, free_map, state: SimState, dt) -> LinearSystem:
    r = comp.resistance
    system = _stamp_branch(system, comp.mesh1, comp.mesh2, r, None, free_map, state.mesh_currents)
    system = _stamp_branch(system, comp.mesh2, comp.mesh1, r, None, free_map, state.mesh_currents)
    return system


def _stamp_inductor(comp: Inductor, system, free_map, state: SimState, dt) -> LinearSystem:
    coeff = comp.inductance / dt
    prev1 = _mesh_value(state.previous_mesh_currents, comp.mesh1)
    prev2 = _mesh_value(state.previous_mesh_currents, comp.mesh2)
    constant = -coeff * (prev1 - prev2)

    system = _stamp_branch(system, comp.mesh1, comp.mesh2, coeff, constant, free_map, state.mesh_currents)
    system = _stamp_branch(system, comp.mesh2, comp.mesh1, coeff, -constant, free_map, state.mesh_currents)
    return system


def _stamp_capacitor(comp: Capacitor, system, free_map, state: SimState, dt) -> LinearSystem:
    a, b = system
    v = comp.voltage
    if comp.mesh1 is not GND and comp.mesh1 in free_map:
        b = b.at[free_map[comp.mesh1]].add(v)
    if comp.mesh2 is not GND and comp.mesh2 in free_map:
        b = b.at[free_map[comp.mesh2]].add(-v)
    return LinearSystem(a, b)


def stamp(
    component: Component,
    system: LinearSystem,
    free_map: dict[int, int],
    state: SimState,
    dt: float,
) -> LinearSystem:
    """
    Add a component's contribution to the linear system.

    Contributions accumulate; no component owns a matrix cell. For a
    capacitor, `component.voltage` is the voltage used for this step.

    Returns:
        The updated LinearSystem
    """
    if isinstance(component, Resistor):
        return _stamp_resistor(component, system, free_map, state, dt)
    elif isinstance(component, Inductor):
        return _stamp_inductor(component, system, free_map, state, dt)
    elif isinstance(component, Capacitor):
        return _stamp_capacitor(component, system, free_map, state, dt)
    elif isinstance(component, CurrentSource):
        # Sources force mesh currents before assembly instead
        return system
    else:
        raise TypeError(f"Unknown component kind: {type(component).__name__}")


def update_capacitor_voltage(cap: Capacitor, voltage, mesh_currents: Array, dt: float) -> Array:
    """Forward Euler: V += dt * (I[mesh1] - I[mesh2]) / C."""
    i1 = _mesh_value(mesh_currents, cap.mesh1)
    i2 = _mesh_value(mesh_currents, cap.mesh2)
    return voltage + dt * ((i1 - i2) / cap.capacitance)


def step(components: Sequence[Component], state: SimState, dt: float) -> SimState:
    """
    Advance the circuit by one time step.

    Args:
        components: Components in insertion order (same list used for init_state)
        state: Current state
        dt: Timestep in seconds

    Returns:
        New SimState at time + dt

    Raises:
        SingularSystemError: if the free-mesh system cannot be solved
    """
    previous = state.mesh_currents
    currents = state.mesh_currents

    # Grounded current sources force their mesh
    forced = set()
    for comp in components:
        if isinstance(comp, CurrentSource):
            mesh = forced_mesh(comp)
            if mesh is not GND:
                currents = apply_source(comp, currents, state.time)
                forced.add(mesh)

    free_map = build_free_mesh_map(state.total_meshes, forced)
    n_free = len(free_map)
    logger.debug("Step: %d free meshes, %d forced", n_free, len(forced))

    stamp_state = state._replace(mesh_currents=currents, previous_mesh_currents=previous)
    system = LinearSystem.zeros(n_free)

    cap_slot = 0
    for comp in components:
        if isinstance(comp, CurrentSource):
            continue
        if isinstance(comp, Capacitor):
            comp = comp._replace(voltage=state.cap_voltages[cap_slot])
            cap_slot += 1
        system = stamp(comp, system, free_map, stamp_state, dt)

    x = solve_linear_system(system.a, system.b)
    if n_free > 0:
        free_meshes = jnp.array(list(free_map), dtype=jnp.int32)
        currents = currents.at[free_meshes].set(x)

    caps = capacitors(components)
    if caps:
        cap_voltages = jnp.stack([
            update_capacitor_voltage(cap, state.cap_voltages[k], currents, dt)
            for k, cap in enumerate(caps)
        ])
    else:
        cap_voltages = state.cap_voltages

    return SimState(
        time=state.time + dt,
        mesh_currents=currents,
        previous_mesh_currents=previous,
        cap_voltages=cap_voltages,
        total_meshes=state.total_meshes,
    )
