import numpy as np
import pytest

from lie_kalman.lie.bundle import Bundle
from lie_kalman.lie.rn import Rn
from lie_kalman.lie.se2 import SE2
from lie_kalman.math_utils import numerical_jacobian, numerical_manifold_jacobian

TANGENTS = [
    np.array([0.4, -0.3, 0.7]),
    np.array([1.2, 0.5, -2.9]),
    np.array([0.3, 0.1, 0.0]),
    np.array([-0.2, 0.6, 1e-9]),
]


@pytest.mark.parametrize("tau", TANGENTS)
def test_se2_exp_log_round_trip(tau: np.ndarray) -> None:
    assert np.allclose(SE2.exp(tau).log(), tau, atol=1e-12)


def test_se2_zero_angle_exp_is_straight_translation() -> None:
    pose = SE2.exp(np.array([0.7, -0.1, 0.0]))
    assert np.allclose(pose.as_array(), [0.7, -0.1, 0.0])


def test_se2_angle_is_wrapped() -> None:
    pose = SE2(0.0, 0.0, 3.0 * np.pi)
    assert -np.pi <= pose.angle < np.pi
    assert np.isclose(abs(pose.angle), np.pi)


def test_se2_compose_inverse_identity() -> None:
    pose = SE2(1.5, -0.7, 2.2)
    assert pose.compose(pose.inverse()).is_approx(SE2.identity())
    assert pose.inverse().compose(pose).is_approx(SE2.identity())


def test_se2_between_and_act() -> None:
    a = SE2(1.0, 2.0, 0.3)
    b = SE2(-0.5, 0.4, -1.1)
    assert a.compose(a.between(b)).is_approx(b)

    point = np.array([0.8, -1.3])
    assert np.allclose(a.inverse_act(a.act(point)), point)
    assert np.allclose(SE2(1.0, 0.0, np.pi / 2.0).inverse_act(np.array([2.0, 1.0])), [1.0, -1.0])


def test_se2_plus_minus_round_trips() -> None:
    x = SE2(0.2, -1.0, 0.9)
    y = SE2(-0.4, 0.5, -2.5)
    assert x.rplus(y.rminus(x)).is_approx(y)
    assert x.lplus(y.lminus(x)).is_approx(y)
    assert np.allclose(x.rminus(x), np.zeros(3))


def test_se2_adjoint_moves_tangent_across_the_group() -> None:
    x = SE2(0.7, -0.3, 1.1)
    tau = np.array([0.2, -0.4, 0.3])
    assert x.rplus(tau).is_approx(x.lplus(x.adj() @ tau))


@pytest.mark.parametrize("tau", TANGENTS)
def test_se2_right_and_left_jacobians_match_finite_differences(tau: np.ndarray) -> None:
    reference = SE2.exp(tau)
    jr = numerical_jacobian(lambda t: SE2.exp(t).rminus(reference), tau)
    jl = numerical_jacobian(lambda t: SE2.exp(t).lminus(reference), tau)
    assert np.allclose(SE2.rjac(tau), jr, atol=1e-6)
    assert np.allclose(SE2.ljac(tau), jl, atol=1e-6)
    assert np.allclose(SE2.rjacinv(tau) @ SE2.rjac(tau), np.eye(3))
    assert np.allclose(SE2.ljacinv(tau) @ SE2.ljac(tau), np.eye(3))


def test_se2_small_angle_jacobian_is_continuous() -> None:
    tiny = SE2.rjac(np.array([0.4, -0.2, 1e-9]))
    small = SE2.rjac(np.array([0.4, -0.2, 1e-5]))
    assert np.allclose(tiny, small, atol=1e-5)


def test_se2_operation_jacobians_match_finite_differences() -> None:
    x = SE2(0.6, -0.2, 0.8)
    y = SE2(-1.1, 0.4, -0.5)
    tau = np.array([0.3, 0.2, -0.6])

    j_x, j_y = x.compose_jacobians(y)
    assert np.allclose(j_x, numerical_manifold_jacobian(lambda a: a.compose(y), x), atol=1e-6)
    assert np.allclose(j_y, numerical_manifold_jacobian(lambda b: x.compose(b), y), atol=1e-6)

    assert np.allclose(x.inverse_jacobian(), numerical_manifold_jacobian(lambda a: a.inverse(), x), atol=1e-6)

    j_x, j_tau = x.rplus_jacobians(tau)
    assert np.allclose(j_x, numerical_manifold_jacobian(lambda a: a.rplus(tau), x), atol=1e-6)
    assert np.allclose(j_tau, numerical_jacobian(lambda t: x.rplus(t).rminus(x.rplus(tau)), tau), atol=1e-6)

    j_x, j_y = x.rminus_jacobians(y)
    assert np.allclose(j_x, numerical_manifold_jacobian(lambda a: a.rminus(y), x), atol=1e-6)
    assert np.allclose(j_y, numerical_manifold_jacobian(lambda b: x.rminus(b), y), atol=1e-6)


def test_rn_is_additive_with_identity_jacobians() -> None:
    a = Rn([1.0, 2.0, 3.0])
    b = Rn([0.5, -1.0, 0.0])
    assert np.allclose(a.compose(b).coeffs, [1.5, 1.0, 3.0])
    assert np.allclose(a.compose(a.inverse()).coeffs, np.zeros(3))
    assert np.allclose(a.between(b).coeffs, b.coeffs - a.coeffs)
    assert np.allclose(a.rplus(b.rminus(a)).coeffs, b.coeffs)
    assert np.allclose(a.rjac(np.ones(3)), np.eye(3))
    assert np.allclose(a.adj(), np.eye(3))
    assert np.allclose(a.inverse_jacobian(), -np.eye(3))


def test_rn_coefficients_are_read_only() -> None:
    calibration = Rn([1.0, 1.0, 1.0])
    with pytest.raises(ValueError):
        calibration.coeffs[0] = 2.0


def test_bundle_layout_and_blocks(calibrated_state: Bundle) -> None:
    assert calibrated_state.dof == 6
    assert len(calibrated_state) == 2
    assert calibrated_state.block(0) == slice(0, 3)
    assert calibrated_state.block(1) == slice(3, 6)
    assert np.allclose(calibrated_state.as_array(), [0.3, -0.2, 0.4, 1.05, 0.97, 1.02])


def test_bundle_round_trips(calibrated_state: Bundle) -> None:
    other = Bundle(SE2(-1.0, 0.5, -2.0), Rn([0.9, 1.1, 1.0]))
    assert calibrated_state.rplus(other.rminus(calibrated_state)).is_approx(other)
    assert calibrated_state.lplus(other.lminus(calibrated_state)).is_approx(other)
    assert calibrated_state.compose(calibrated_state.between(other)).is_approx(other)

    identity = Bundle(SE2.identity(), Rn.identity(3))
    assert calibrated_state.compose(calibrated_state.inverse()).is_approx(identity)

    tau = np.array([0.1, -0.2, 0.3, 0.01, 0.02, -0.03])
    assert np.allclose(identity.exp(tau).log(), tau)


def test_bundle_jacobians_are_block_diagonal(calibrated_state: Bundle) -> None:
    tau = np.array([0.2, 0.1, -0.4, 0.5, 0.5, 0.5])
    jr = calibrated_state.rjac(tau)
    assert np.allclose(jr[:3, :3], SE2.rjac(tau[:3]))
    assert np.allclose(jr[3:, 3:], np.eye(3))
    assert np.allclose(jr[:3, 3:], 0.0)
    assert np.allclose(jr[3:, :3], 0.0)

    adj = calibrated_state.adj()
    assert np.allclose(adj[:3, :3], calibrated_state.element(0).adj())
    assert np.allclose(adj[3:, 3:], np.eye(3))


def test_bundle_rplus_jacobians_match_finite_differences(calibrated_state: Bundle) -> None:
    tau = np.array([0.2, 0.1, -0.4, 0.05, -0.02, 0.01])
    j_x, j_tau = calibrated_state.rplus_jacobians(tau)
    assert np.allclose(j_x, numerical_manifold_jacobian(lambda s: s.rplus(tau), calibrated_state), atol=1e-6)
    expected_tau = numerical_jacobian(
        lambda t: calibrated_state.rplus(t).rminus(calibrated_state.rplus(tau)), tau
    )
    assert np.allclose(j_tau, expected_tau, atol=1e-6)


def test_bundle_rejects_bad_inputs(calibrated_state: Bundle) -> None:
    with pytest.raises(ValueError):
        Bundle()
    with pytest.raises(ValueError):
        calibrated_state.rplus(np.zeros(5))
    with pytest.raises(ValueError):
        calibrated_state.with_element(1, Rn([1.0, 1.0]))
    with pytest.raises(ValueError):
        calibrated_state.rminus(Bundle(SE2.identity()))


def test_bundle_with_element_replaces_only_that_element(calibrated_state: Bundle) -> None:
    updated = calibrated_state.with_element(1, Rn([0.85, 0.85, 1.0]))
    assert updated.element(0) == calibrated_state.element(0)
    assert np.allclose(updated.element(1).coeffs, [0.85, 0.85, 1.0])
    assert np.allclose(calibrated_state.element(1).coeffs, [1.05, 0.97, 1.02])


def test_se2_homogeneous_matrix_composes_like_the_group() -> None:
    a = SE2(1.0, -2.0, 0.6)
    b = SE2(0.3, 0.4, -1.4)
    assert np.allclose(a.transform() @ b.transform(), a.compose(b).transform())
    assert np.allclose(SE2.from_array(a.as_array()).transform(), a.transform())


def test_exp_is_called_the_same_way_on_every_element_type() -> None:
    nested = Bundle(SE2(1.0, 2.0, 0.5), Bundle(Rn([3.0]), SE2(0.0, 0.0, 1.0)))
    tau = np.array([0.1, -0.2, 0.3, 0.4, 0.5, 0.6, -0.7])
    exp_tau = nested.exp(tau)
    assert exp_tau.element(0).is_approx(SE2.exp(tau[:3]))
    assert np.allclose(exp_tau.element(1).element(0).coeffs, [0.4])
    assert exp_tau.element(1).element(1).is_approx(SE2.exp(tau[4:]))
    assert np.allclose(exp_tau.log(), tau)
    assert nested.rplus(tau).is_approx(nested.compose(exp_tau))
