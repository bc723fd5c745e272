"""問題の入口（関数 API）と sklearn 風の推定器。

- solve: problem_data の形（{X, Y} / {Sigma, mu, phi}）で回帰かポートフォリオかを選ぶ
- solve_regression / solve_portfolio: それぞれの型付き入口
- SparseRegression / SparsePortfolio: ハイパーパラメータを __init__ に保存し、
  fit 後に coef_ などの学習後属性（末尾 '_'）を持つ推定器

どの入口も、反復開始前に入力検証（次元・λ の並び・種別タグ）を済ませてから
ADMMSolver に渡す。
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

import numpy as np

from .config import SolverConfig
from .diagnostics import DiagnosticsSink
from .errors import InvalidArgumentError
from .penalty import make_penalty
from .program import QuadraticProgram, portfolio_program, regression_program
from .solver import ADMMResult, ADMMSolver
from .types import ArrayLike

Configuration = Union[SolverConfig, Mapping[str, Any], None]


def _resolve_config(configuration: Configuration) -> SolverConfig:
    if isinstance(configuration, SolverConfig):
        return configuration
    return SolverConfig.from_mapping(configuration)


def _run(
    program: QuadraticProgram,
    penalty_kind: Any,
    lam: ArrayLike,
    configuration: Configuration,
    init_w: Optional[ArrayLike],
    diagnostics: Optional[DiagnosticsSink],
) -> ADMMResult:
    penalty = make_penalty(penalty_kind, lam, program.n_weights)
    solver = ADMMSolver(
        program=program,
        penalty=penalty,
        config=_resolve_config(configuration),
        diagnostics=diagnostics,
    )
    return solver.run(init_w)


def solve_regression(
    X: ArrayLike,
    Y: ArrayLike,
    penalty_kind: Any,
    lam: ArrayLike,
    configuration: Configuration = None,
    init_w: Optional[ArrayLike] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> ADMMResult:
    """min 0.5||Y - Xw||^2 + pen(w)  s.t.  sum(w) = 1 を解く。"""

    return _run(
        regression_program(X, Y), penalty_kind, lam, configuration, init_w, diagnostics
    )


def solve_portfolio(
    Sigma: ArrayLike,
    mu: ArrayLike,
    phi: float,
    penalty_kind: Any,
    lam: ArrayLike,
    configuration: Configuration = None,
    init_w: Optional[ArrayLike] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> ADMMResult:
    """min 0.5 phi w^T Sigma w - mu^T w + pen(w)  s.t.  sum(w) = 1 を解く。"""

    return _run(
        portfolio_program(Sigma, mu, phi),
        penalty_kind,
        lam,
        configuration,
        init_w,
        diagnostics,
    )


def solve(
    problem_data: Mapping[str, Any],
    penalty_kind: Any,
    lam: ArrayLike,
    configuration: Configuration = None,
    init_w: Optional[ArrayLike] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> ADMMResult:
    """problem_data のキーから問題を選んで解く。

    Args:
        problem_data: {"X", "Y"}（回帰）または {"Sigma", "mu", "phi"}（ポートフォリオ）。
        penalty_kind: "L1" または "SortedL1"。
        lam: L1 ならスカラー、SortedL1 なら長さ K の降順・非負列。
        configuration: SolverConfig または設定辞書（未知キーは無視）。
        init_w: 初期重み。None なら一様 1/K。
        diagnostics: 反復ごとの IterationRecord を受け取るシンク。

    Raises:
        InvalidArgumentError: problem_data の形が不明、または入力が不正な場合。
        NumericalSingularityError: 必要な線形ソルブが行えない場合。
    """

    keys = set(problem_data)
    if {"X", "Y"} <= keys:
        return solve_regression(
            problem_data["X"],
            problem_data["Y"],
            penalty_kind,
            lam,
            configuration,
            init_w,
            diagnostics,
        )
    if {"Sigma", "mu", "phi"} <= keys:
        return solve_portfolio(
            problem_data["Sigma"],
            problem_data["mu"],
            problem_data["phi"],
            penalty_kind,
            lam,
            configuration,
            init_w,
            diagnostics,
        )
    raise InvalidArgumentError(
        f"problem_data のキー {sorted(keys)} から問題を判別できません"
        "（{X, Y} または {Sigma, mu, phi} が必要です）。"
    )


def _store_result(estimator: Any, result: ADMMResult) -> None:
    # 学習後属性（末尾 '_'）として結果を保持する。
    estimator.coef_ = result.w
    estimator.alpha_ = result.alpha
    estimator.beta_ = result.beta
    estimator.penalty_value_ = result.penalty
    estimator.objective_ = result.objective
    estimator.status_ = result.status
    estimator.n_iter_ = result.n_iter
    estimator.rho_ = result.rho
    estimator.history_ = result.history


def _check_is_fitted(estimator: Any) -> None:
    if not hasattr(estimator, "coef_"):
        raise RuntimeError(
            f"This {type(estimator).__name__} instance is not fitted yet."
        )


class SparseRegression:
    """和が 1 の制約付きスパース回帰（L1 / SortedL1）。

    sklearn 互換の作法:
        - __init__ ではハイパーパラメータを属性に保存するだけ（副作用なし）
        - fit により学習し、coef_ / alpha_ / objective_ / status_ / history_ 等を保持する
    """

    def __init__(
        self,
        penalty: str = "L1",
        lam: Any = 0.0,
        max_iter: int = 10000,
        tol_infeas: float = 1e-5,
        tol_rel_gap: float = 1e-5,
        rho: Optional[float] = None,
        verbose: bool = False,
        time_limit: Optional[float] = None,
    ) -> None:
        self.penalty = penalty
        self.lam = lam
        self.max_iter = max_iter
        self.tol_infeas = tol_infeas
        self.tol_rel_gap = tol_rel_gap
        self.rho = rho
        self.verbose = verbose
        self.time_limit = time_limit

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SparseRegression":
        """辞書（設定）から推定器を構築する。"lambda" キーは lam として扱う。"""

        config_dict = dict(config)
        if "lambda" in config_dict:
            config_dict["lam"] = config_dict.pop("lambda")
        return cls(**config_dict)

    def solver_config(self) -> SolverConfig:
        return SolverConfig(
            max_iter=self.max_iter,
            tol_infeas=self.tol_infeas,
            tol_rel_gap=self.tol_rel_gap,
            rho=self.rho,
            verbose=self.verbose,
            time_limit=self.time_limit,
        )

    def fit(
        self,
        X: ArrayLike,
        y: ArrayLike,
        init_w: Optional[ArrayLike] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> "SparseRegression":
        result = solve_regression(
            X, y, self.penalty, self.lam, self.solver_config(), init_w, diagnostics
        )
        self.n_features_in_ = int(np.asarray(result.w).shape[0])
        _store_result(self, result)
        return self

    def predict(self, X: ArrayLike) -> np.ndarray:
        _check_is_fitted(self)
        X_array = np.asarray(X, dtype=float)
        if X_array.ndim == 1:
            X_array = X_array.reshape(-1, 1)
        if X_array.shape[1] != self.n_features_in_:
            raise InvalidArgumentError("X の列数が学習時と一致しません。")
        return X_array @ self.coef_

    def score(self, X: ArrayLike, y: ArrayLike) -> float:
        """決定係数 R^2 を返す。"""

        y_array = np.asarray(y, dtype=float).reshape(-1)
        resid = y_array - self.predict(X)
        centered = y_array - y_array.mean()
        denom = float(centered @ centered)
        if denom == 0.0:
            return 0.0
        return 1.0 - float(resid @ resid) / denom


class SparsePortfolio:
    """和が 1 の制約付きスパース平均分散ポートフォリオ（L1 / SortedL1）。"""

    def __init__(
        self,
        phi: float = 1.0,
        penalty: str = "L1",
        lam: Any = 0.0,
        max_iter: int = 10000,
        tol_infeas: float = 1e-5,
        tol_rel_gap: float = 1e-5,
        rho: Optional[float] = None,
        verbose: bool = False,
        time_limit: Optional[float] = None,
    ) -> None:
        self.phi = phi
        self.penalty = penalty
        self.lam = lam
        self.max_iter = max_iter
        self.tol_infeas = tol_infeas
        self.tol_rel_gap = tol_rel_gap
        self.rho = rho
        self.verbose = verbose
        self.time_limit = time_limit

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SparsePortfolio":
        config_dict = dict(config)
        if "lambda" in config_dict:
            config_dict["lam"] = config_dict.pop("lambda")
        return cls(**config_dict)

    def solver_config(self) -> SolverConfig:
        return SolverConfig(
            max_iter=self.max_iter,
            tol_infeas=self.tol_infeas,
            tol_rel_gap=self.tol_rel_gap,
            rho=self.rho,
            verbose=self.verbose,
            time_limit=self.time_limit,
        )

    def fit(
        self,
        Sigma: ArrayLike,
        mu: ArrayLike,
        init_w: Optional[ArrayLike] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> "SparsePortfolio":
        result = solve_portfolio(
            Sigma,
            mu,
            self.phi,
            self.penalty,
            self.lam,
            self.solver_config(),
            init_w,
            diagnostics,
        )
        _store_result(self, result)
        return self

    def summary(self, Sigma: ArrayLike, mu: ArrayLike) -> Dict[str, float]:
        """学習済みの重みについて期待リターン・リスクを返す。"""

        _check_is_fitted(self)
        Sigma_array = np.asarray(Sigma, dtype=float)
        mu_array = np.asarray(mu, dtype=float).reshape(-1)
        w = self.coef_
        variance = float(w @ Sigma_array @ w)
        return {
            "expected_return": float(mu_array @ w),
            "risk": float(np.sqrt(max(variance, 0.0))),
            "n_active": int(np.count_nonzero(np.abs(w) > 0.0)),
            "gross_exposure": float(np.sum(np.abs(w))),
        }
