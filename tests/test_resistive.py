"""
Test: Purely resistive circuits with current sources.

Without inductors or capacitors the system is memoryless: every step gives
the same mesh currents.

This validates:
- Forced meshes from grounded current sources (and their polarity)
- Shared resistor coupling between meshes
- All-forced circuits (empty linear system)
"""
import logging
import pytest
import jax.numpy as jnp


def test_all_meshes_forced_is_memoryless():
    """Two grounded sources force both meshes; the resistor changes nothing."""
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.1)
    circuit.add_component(CurrentSource(0, GND, lambda t: 1.0))
    circuit.add_component(Resistor(0, 1, 10.0))
    circuit.add_component(CurrentSource(1, GND, lambda t: 0.0))
    circuit.initialize_state()

    first = circuit.step().mesh_currents
    assert float(first[0]) == 1.0
    assert float(first[1]) == 0.0

    for _ in range(5):
        state = circuit.step()
        assert jnp.array_equal(state.mesh_currents, first)


def test_current_divider():
    """
    Source forces mesh 0; mesh 1 holds R1 (shared) and R2 (to ground).

    KVL mesh 1: R1*(I1 - I0) + R2*I1 = 0  ->  I1 = R1*I0 / (R1 + R2)
    """
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(1e-3)
    circuit.add_component(CurrentSource(0, GND, lambda t: 2.0))
    circuit.add_component(Resistor(0, 1, 10.0))
    circuit.add_component(Resistor(1, GND, 30.0))
    circuit.initialize_state()

    circuit.step()
    assert float(circuit.current(1)) == pytest.approx(0.5, rel=1e-6)

    # Memoryless: second step identical
    before = circuit.state.mesh_currents
    circuit.step()
    assert jnp.array_equal(circuit.state.mesh_currents, before)


def test_three_mesh_ladder():
    """
    Ladder: I0 forced to 1 A, R(0,1)=1, R(1,2)=1, R(1,GND)=1, R(2,GND)=1.

    Mesh 1:  3*I1 - I2 = 1
    Mesh 2: -I1 + 2*I2 = 0   ->  I1 = 0.4, I2 = 0.2
    """
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.1)
    circuit.add_component(CurrentSource(0, GND, lambda t: 1.0))
    circuit.add_component(Resistor(0, 1, 1.0))
    circuit.add_component(Resistor(1, 2, 1.0))
    circuit.add_component(Resistor(1, GND, 1.0))
    circuit.add_component(Resistor(2, GND, 1.0))
    circuit.initialize_state()

    circuit.step()
    assert float(circuit.current(1)) == pytest.approx(0.4, rel=1e-5)
    assert float(circuit.current(2)) == pytest.approx(0.2, rel=1e-5)


def test_source_polarity_on_mesh2():
    """A source with ground on mesh1 drives mesh2 with the negated value."""
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.1)
    circuit.add_component(CurrentSource(GND, 0, lambda t: 3.0))
    circuit.add_component(Resistor(0, GND, 1.0))
    circuit.initialize_state()

    circuit.step()
    assert float(circuit.current(0)) == -3.0


def test_time_dependent_source():
    """The source is evaluated at the state time before it advances."""
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.5)
    circuit.add_component(CurrentSource(0, GND, lambda t: 2.0 * t))
    circuit.add_component(Resistor(0, GND, 1.0))
    circuit.initialize_state()

    values = [float(circuit.step().mesh_currents[0]) for _ in range(3)]
    assert values == pytest.approx([0.0, 1.0, 2.0])
    assert float(circuit.state.time) == pytest.approx(1.5)


def test_floating_source_is_ignored_with_warning(caplog):
    """A source between two meshes has no effect and is reported."""
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.1)
    circuit.add_component(CurrentSource(0, 1, lambda t: 5.0, name="Ifloat"))
    circuit.add_component(Resistor(0, GND, 1.0))
    circuit.add_component(Resistor(1, GND, 1.0))

    with caplog.at_level(logging.WARNING, logger="meshsim"):
        circuit.initialize_state()
    assert "Ifloat" in caplog.text

    circuit.step()
    assert float(circuit.current(0)) == 0.0
    assert float(circuit.current(1)) == 0.0


def test_grounded_both_ends_source_is_ignored():
    from meshsim import Circuit, GND, Resistor, CurrentSource

    circuit = Circuit(0.1)
    circuit.add_component(CurrentSource(GND, GND, lambda t: 5.0))
    circuit.add_component(Resistor(0, GND, 1.0))
    circuit.initialize_state()

    circuit.step()
    assert circuit.total_meshes == 1
    assert float(circuit.current(0)) == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
