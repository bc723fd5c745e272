"""問題固有の二次形式（QuadraticProgram）と、その 2 つの具体化。

ADMM ソルバは
    minimize  q(w) + pen(w)  subject to  sum_i w_i = 1
の q を、次の 4 つを通じてのみ参照する。

    - Q, c:              q(w) = 0.5 w^T Q w - c^T w + offset
    - quadratic_term(w): q(w) の値（問題ごとの自然な形で評価する）
    - dual_objective:    双対目的関数 -0.5 tmp^T Q^{-1} tmp + offset - beta,
                         tmp = c - alpha - beta e

回帰とポートフォリオは継承ではなく、この同じレコードを返す 2 つのビルダ関数
（regression_program / portfolio_program）で表現する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np
from scipy import linalg as la

from .errors import InvalidArgumentError, NumericalSingularityError
from .types import ArrayLike


@dataclass
class QuadraticProgram:
    """1 つの問題インスタンスの二次部分を束ねるレコード。

    Attributes:
        name: "regression" / "portfolio" など、ログ表示用の名前。
        Q: K x K 対称行列。
        c: 長さ K の線形項。
        offset: 双対目的関数に足す定数（回帰では 0.5 Y^T Y、ポートフォリオでは 0）。
        quadratic_term: q(w) を評価する関数。
        rho_hint: 既定の rho（スペクトルノルムに基づく推定値）。
    """

    name: str
    Q: np.ndarray
    c: np.ndarray
    offset: float
    quadratic_term: Callable[[np.ndarray], float]
    rho_hint: float
    _q_factor: Any = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        # 双対目的関数は毎反復 Q^{-1} を要するため、ここで一度だけ分解しておく。
        # 分解できない場合は反復開始前に失敗させる。
        try:
            self._q_factor = la.cho_factor(self.Q, lower=True)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise NumericalSingularityError(
                f"{self.name}: 双対目的関数に必要な Q の分解ができません"
                "（Q が正定値でない可能性があります）。"
            ) from exc

    @property
    def n_weights(self) -> int:
        return int(self.c.shape[0])

    def dual_offset(self) -> float:
        return float(self.offset)

    def default_rho(self) -> float:
        return float(self.rho_hint)

    def dual_objective(self, alpha: np.ndarray, beta: float) -> float:
        """双対目的関数値を返す。"""

        tmp = self.c - alpha - beta
        quad = float(tmp @ la.cho_solve(self._q_factor, tmp))
        return -0.5 * quad + self.dual_offset() - float(beta)


def _as_vector(value: ArrayLike, name: str) -> np.ndarray:
    """1 次元ベクトルへ正規化する。(1, K) / (K, 1) の行列は平坦化して受け付ける。"""

    arr = np.asarray(value, dtype=float)
    if arr.ndim == 2 and 1 in arr.shape:
        arr = arr.reshape(-1)
    if arr.ndim != 1:
        raise InvalidArgumentError(f"{name} は 1 次元ベクトルである必要があります。")
    if np.any(~np.isfinite(arr)):
        raise InvalidArgumentError(f"{name} に NaN/inf が含まれています。")
    return arr


def _spectral_norm(A: np.ndarray) -> float:
    if A.size == 0:
        return 0.0
    return float(np.linalg.norm(A, ord=2))


def _positive_or_one(value: float) -> float:
    # 零行列などで推定値が 0 になると rho > 0 を満たせないため 1 にする。
    if not np.isfinite(value) or value <= 0.0:
        return 1.0
    return float(value)


def regression_program(X: ArrayLike, Y: ArrayLike) -> QuadraticProgram:
    """最小二乗回帰 q(w) = 0.5 ||Y - X w||^2 のプログラムを作る。

    Q = X^T X, c = X^T Y, offset = 0.5 Y^T Y。
    既定の rho は X のスペクトルノルム。

    Raises:
        InvalidArgumentError: X が 2 次元でない、行数が Y と一致しない、NaN/inf を含む場合。
        NumericalSingularityError: X^T X が正定値でない場合。
    """

    X_array = np.asarray(X, dtype=float)
    if X_array.ndim == 1:
        X_array = X_array.reshape(-1, 1)
    elif X_array.ndim != 2:
        raise InvalidArgumentError("X は 2 次元配列（N, K）である必要があります。")
    if np.any(~np.isfinite(X_array)):
        raise InvalidArgumentError("X に NaN/inf が含まれています。")

    Y_array = _as_vector(Y, "Y")
    if X_array.shape[0] != Y_array.shape[0]:
        raise InvalidArgumentError(
            f"X の行数 {X_array.shape[0]} と Y の長さ {Y_array.shape[0]} が一致しません。"
        )

    Q = X_array.T @ X_array
    c = X_array.T @ Y_array

    def quadratic_term(w: np.ndarray) -> float:
        resid = Y_array - X_array @ w
        return 0.5 * float(resid @ resid)

    return QuadraticProgram(
        name="regression",
        Q=Q,
        c=c,
        offset=0.5 * float(Y_array @ Y_array),
        quadratic_term=quadratic_term,
        rho_hint=_positive_or_one(_spectral_norm(X_array)),
    )


def portfolio_program(
    Sigma: ArrayLike, mu: ArrayLike, phi: float, symmetry_tol: Optional[float] = 1e-10
) -> QuadraticProgram:
    """平均分散ポートフォリオ q(w) = 0.5 phi w^T Sigma w - mu^T w のプログラムを作る。

    Q = phi Sigma, c = mu, offset = 0。
    双対目的関数 -0.5 tmp^T (phi Sigma)^{-1} tmp は -(0.5/phi) tmp^T Sigma^{-1} tmp に等しい。
    既定の rho は sqrt(phi) * ||Sigma||_2。

    Args:
        Sigma: 共分散行列（K x K、対称半正定値）。
        mu: 期待リターン（長さ K）。
        phi: リスク回避係数（> 0）。
        symmetry_tol: Sigma の対称性チェックの相対許容誤差。None で検査しない。
    """

    Sigma_array = np.asarray(Sigma, dtype=float)
    if Sigma_array.ndim != 2 or Sigma_array.shape[0] != Sigma_array.shape[1]:
        raise InvalidArgumentError("Sigma は正方行列（K, K）である必要があります。")
    if np.any(~np.isfinite(Sigma_array)):
        raise InvalidArgumentError("Sigma に NaN/inf が含まれています。")
    if symmetry_tol is not None:
        scale = max(1.0, float(np.max(np.abs(Sigma_array))) if Sigma_array.size else 1.0)
        if np.max(np.abs(Sigma_array - Sigma_array.T), initial=0.0) > symmetry_tol * scale:
            raise InvalidArgumentError("Sigma は対称行列である必要があります。")

    mu_array = _as_vector(mu, "mu")
    if mu_array.shape[0] != Sigma_array.shape[0]:
        raise InvalidArgumentError(
            f"mu の長さ {mu_array.shape[0]} が Sigma の次元 {Sigma_array.shape[0]} と一致しません。"
        )

    phi_value = float(phi)
    if not np.isfinite(phi_value) or phi_value <= 0.0:
        raise InvalidArgumentError("phi は正の有限値である必要があります。")

    def quadratic_term(w: np.ndarray) -> float:
        return 0.5 * phi_value * float(w @ Sigma_array @ w) - float(mu_array @ w)

    return QuadraticProgram(
        name="portfolio",
        Q=phi_value * Sigma_array,
        c=mu_array,
        offset=0.0,
        quadratic_term=quadratic_term,
        rho_hint=_positive_or_one(np.sqrt(phi_value) * _spectral_norm(Sigma_array)),
    )
