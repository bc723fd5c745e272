from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sl1admm.errors import InvalidArgumentError, NumericalSingularityError
from sl1admm.penalty import PenaltyOperator
from sl1admm.program import portfolio_program, regression_program


def assert_close(a: float, b: float, *, tol: float, name: str) -> None:
    if not (np.isfinite(a) and np.isfinite(b)):
        raise AssertionError(f"{name}: contains NaN/inf ({a}, {b})")
    if abs(a - b) > tol * max(1.0, abs(b)):
        raise AssertionError(f"{name}: {a:.12e} != {b:.12e}")


def expect_raises(exc_type, func, *args, **kwargs) -> None:
    try:
        func(*args, **kwargs)
    except exc_type:
        return
    raise AssertionError(f"{func.__name__} did not raise {exc_type.__name__}")


def random_regression(rng, n=30, k=4):
    X = rng.normal(size=(n, k))
    Y = rng.normal(size=n)
    return X, Y


def random_portfolio(rng, k=4):
    A = rng.normal(size=(k, 2 * k))
    Sigma = A @ A.T / (2 * k) + 0.1 * np.eye(k)
    mu = rng.normal(scale=0.1, size=k)
    return Sigma, mu


def test_regression_quadratic_term_matches_quadratic_form():
    rng = np.random.default_rng(0)
    X, Y = random_regression(rng)
    prog = regression_program(X, Y)
    for _ in range(5):
        w = rng.normal(size=X.shape[1])
        generic = 0.5 * w @ prog.Q @ w - prog.c @ w + prog.dual_offset()
        assert_close(prog.quadratic_term(w), generic, tol=1e-10, name="0.5||Y - Xw||^2")


def test_regression_dual_objective_closed_form():
    rng = np.random.default_rng(1)
    X, Y = random_regression(rng)
    prog = regression_program(X, Y)
    alpha = rng.normal(size=X.shape[1])
    beta = 0.37
    tmp = X.T @ Y - alpha - beta * np.ones(X.shape[1])
    expected = -0.5 * tmp @ np.linalg.solve(X.T @ X, tmp) + 0.5 * Y @ Y - beta
    assert_close(prog.dual_objective(alpha, beta), expected, tol=1e-10, name="regression dual")

    # alpha = 0, beta = 0 では -0.5 c^T Q^{-1} c に定数項 0.5 Y^T Y が乗る
    assert_close(prog.dual_offset(), 0.5 * Y @ Y, tol=1e-12, name="dual offset")
    zero = prog.dual_objective(np.zeros(X.shape[1]), 0.0)
    base = -0.5 * prog.c @ np.linalg.solve(prog.Q, prog.c)
    assert_close(zero - base, prog.dual_offset(), tol=1e-10, name="offset in dual objective")


def test_portfolio_dual_objective_closed_form():
    rng = np.random.default_rng(2)
    Sigma, mu = random_portfolio(rng)
    phi = 2.5
    prog = portfolio_program(Sigma, mu, phi)
    alpha = rng.normal(scale=0.1, size=mu.size)
    beta = -0.2
    tmp = mu - alpha - beta * np.ones(mu.size)
    expected = -(0.5 / phi) * tmp @ np.linalg.solve(Sigma, tmp) - beta
    assert_close(prog.dual_objective(alpha, beta), expected, tol=1e-10, name="portfolio dual")

    w = rng.normal(size=mu.size)
    expected_q = 0.5 * phi * w @ Sigma @ w - mu @ w
    assert_close(prog.quadratic_term(w), expected_q, tol=1e-12, name="portfolio q(w)")


def test_weak_duality_for_dual_feasible_points():
    rng = np.random.default_rng(3)
    Sigma, mu = random_portfolio(rng, k=5)
    prog = portfolio_program(Sigma, mu, 1.0)
    pen = PenaltyOperator.sorted_l1([0.5, 0.4, 0.3, 0.2, 0.1], 5)
    for _ in range(10):
        w = rng.uniform(size=5)
        w /= w.sum()
        # alpha を双対ノルム球の中から取る（|alpha| の各成分を最小の λ 以下に）
        alpha = rng.uniform(-0.1, 0.1, size=5)
        if pen.dual_infeasibility(alpha) > 0.0:
            raise AssertionError("alpha should be dual feasible")
        beta = float(rng.normal())
        primal = prog.quadratic_term(w) + pen.value(w)
        dual = prog.dual_objective(alpha, beta)
        if dual > primal + 1e-12:
            raise AssertionError(f"weak duality violated: dual={dual} > primal={primal}")


def test_default_rho_is_spectral_estimate():
    prog = regression_program(2.0 * np.eye(3), np.ones(3))
    assert_close(prog.default_rho(), 2.0, tol=1e-12, name="regression rho")
    prog = portfolio_program(np.diag([4.0, 1.0]), np.zeros(2), 4.0)
    assert_close(prog.default_rho(), 8.0, tol=1e-12, name="portfolio rho")


def test_row_vectors_are_accepted():
    X = np.eye(3)
    prog = regression_program(X, np.array([[1.0, 2.0, 3.0]]))
    if prog.c.shape != (3,):
        raise AssertionError(f"c shape mismatch: {prog.c.shape}")
    prog = portfolio_program(np.eye(2), np.array([[0.1], [0.2]]), 1.0)
    if prog.c.shape != (2,):
        raise AssertionError(f"c shape mismatch: {prog.c.shape}")


def test_invalid_inputs_are_rejected():
    expect_raises(InvalidArgumentError, regression_program, np.eye(3), np.ones(2))
    expect_raises(InvalidArgumentError, regression_program, np.ones((2, 2, 2)), np.ones(2))
    expect_raises(InvalidArgumentError, regression_program, np.eye(2), [1.0, np.inf])
    expect_raises(InvalidArgumentError, portfolio_program, np.ones((2, 3)), np.zeros(2), 1.0)
    expect_raises(InvalidArgumentError, portfolio_program, [[1.0, 0.5], [0.0, 1.0]], np.zeros(2), 1.0)
    expect_raises(InvalidArgumentError, portfolio_program, np.eye(3), np.zeros(2), 1.0)
    expect_raises(InvalidArgumentError, portfolio_program, np.eye(2), np.zeros(2), 0.0)


def test_singular_quadratic_form_raises():
    X = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    expect_raises(NumericalSingularityError, regression_program, X, np.ones(2))
    expect_raises(NumericalSingularityError, portfolio_program, np.zeros((2, 2)), np.zeros(2), 1.0)


def main() -> None:
    test_regression_quadratic_term_matches_quadratic_form()
    test_regression_dual_objective_closed_form()
    test_portfolio_dual_objective_closed_form()
    test_weak_duality_for_dual_feasible_points()
    test_default_rho_is_spectral_estimate()
    test_row_vectors_are_accepted()
    test_invalid_inputs_are_rejected()
    test_singular_quadratic_form_raises()
    print("OK: quadratic program / dual objective checks passed")


if __name__ == "__main__":
    main()
