"""w 更新の線形方程式 (Q + rho (I + e e^T)) w = rhs を解くためのキャッシュ。

rho を固定する限り係数行列 M は反復を通じて不変なので、Cholesky 分解を 1 回だけ行い、
各反復では三角ソルブ（O(K^2)）だけを行う。
rho を変える場合は update_rho で分解を作り直す。
"""

from __future__ import annotations

import numpy as np
from scipy import linalg as la

from .errors import InvalidArgumentError, NumericalSingularityError
from .types import ArrayLike


class LinearSystemCache:
    """M = Q + rho (I + e e^T) の Cholesky 分解を保持するクラス。"""

    def __init__(self, Q: ArrayLike, rho: float) -> None:
        # Q: 問題固有の二次形式（K x K 対称）。
        self.Q = np.asarray(Q, dtype=float)
        if self.Q.ndim != 2 or self.Q.shape[0] != self.Q.shape[1]:
            raise InvalidArgumentError("Q は正方行列である必要があります。")
        self.rho = float(rho)
        self._factor = self._factorize(self.rho)

    @property
    def n_weights(self) -> int:
        return int(self.Q.shape[0])

    def _factorize(self, rho: float):
        n = self.Q.shape[0]
        ones = np.ones((n, n), dtype=float)
        M = self.Q + rho * (np.eye(n, dtype=float) + ones)
        try:
            return la.cho_factor(M, lower=True)
        except (np.linalg.LinAlgError, ValueError) as exc:
            # ValueError は M に NaN/inf が含まれる場合（check_finite）。
            raise NumericalSingularityError(
                f"Q + rho(I + ee^T) を Cholesky 分解できません（rho={rho:g}）。"
            ) from exc

    def update_rho(self, rho: float) -> bool:
        """rho を差し替える。値が変わった場合のみ再分解し True を返す。"""

        rho = float(rho)
        if rho == self.rho:
            return False
        self._factor = self._factorize(rho)
        self.rho = rho
        return True

    def solve(self, rhs: ArrayLike) -> np.ndarray:
        """M x = rhs の解 x を返す。"""
        return la.cho_solve(self._factor, np.asarray(rhs, dtype=float))
