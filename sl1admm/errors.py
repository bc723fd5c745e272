"""ソルバが送出する例外クラス。

- InvalidArgumentError: 反復開始前に検出される入力不正（次元不一致、λ の順序違反など）。
- NumericalSingularityError: 必要な線形ソルブ（Cholesky 分解）が行えない場合。

反復上限への到達は例外ではなく、ADMMResult.status で通知する。
"""

from __future__ import annotations

import numpy as np


class InvalidArgumentError(ValueError):
    """入力引数が契約を満たさない場合の例外。"""


class NumericalSingularityError(np.linalg.LinAlgError):
    """行列が分解できず線形ソルブが行えない場合の例外。"""
