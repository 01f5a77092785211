"""
Test: RL circuit driven by a constant current source.

Mesh 0 is forced to 1 A by a grounded source. The resistor is shared by
mesh 0 and mesh 1; the inductor closes mesh 1 to ground.

    mesh 1 row:  (R + L/dt) * I1 = R * I0 + (L/dt) * I1_prev

With R=10, L=1, dt=0.1:  I1(n+1) = 0.5 + 0.5 * I1(n)

This validates:
- Backward Euler inductor companion model (L/dt + history term)
- Forced mesh folded into the constant vector
"""
import pytest


def build_rl(dt=0.1, R_val=10.0, L_val=1.0, I_src=1.0):
    from meshsim import Circuit, GND, Resistor, Inductor, CurrentSource

    circuit = Circuit(dt)
    circuit.add_component(CurrentSource(0, GND, lambda t: I_src))
    circuit.add_component(Resistor(0, 1, R_val))
    circuit.add_component(Inductor(1, GND, L_val))
    circuit.initialize_state()
    return circuit


def test_rl_recurrence_first_steps():
    """Mesh current must follow the hand-computed backward Euler recurrence."""
    R_val, L_val, dt, I_src = 10.0, 1.0, 0.1, 1.0
    circuit = build_rl(dt, R_val, L_val, I_src)

    coeff = L_val / dt
    i1 = 0.0
    for n in range(3):
        circuit.step()
        i1 = (R_val * I_src + coeff * i1) / (R_val + coeff)

        got = float(circuit.current(1))
        assert got == pytest.approx(i1, rel=1e-6), \
            f"Step {n + 1}: got {got:.6f}A, expected {i1:.6f}A"

    # 0.5, 0.75, 0.875
    assert float(circuit.current(1)) == pytest.approx(0.875, rel=1e-6)
    assert float(circuit.current(0)) == pytest.approx(1.0)


def test_rl_inductor_current_settles_to_source():
    """In steady state the inductor carries the whole source current."""
    circuit = build_rl()

    for _ in range(60):
        circuit.step()

    # Residual after n steps is 0.5**n
    assert float(circuit.current(1)) == pytest.approx(1.0, abs=1e-5)
    assert float(circuit.state.time) == pytest.approx(6.0, rel=1e-5)


def test_rl_previous_currents_tracked():
    """previous_mesh_currents holds the currents from before the last step."""
    circuit = build_rl()

    circuit.step()
    first = float(circuit.current(1))
    circuit.step()

    assert float(circuit.state.previous_mesh_currents[1]) == pytest.approx(first)
    assert float(circuit.current(1)) == pytest.approx(0.75, rel=1e-6)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
