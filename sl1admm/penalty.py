"""スパース化ペナルティ（L1 / sorted-L1）とその近接写像。

責務:
    - ペナルティ値 pen(w) の評価
    - 近接写像 prox(y, t) = argmin_v 0.5||y - v||^2 + t * pen(v) の計算
    - 双対変数 alpha が双対ノルム球に入っているかの違反量（双対実行不能度）の計算

設計意図:
    L1 と sorted-L1 はクラス階層ではなく、kind タグを持つ 1 つのレコード
    （PenaltyOperator）として表現する。ソルバは kind を意識せず prox / value /
    dual_infeasibility の 3 つだけを呼ぶ。

注意:
    sorted-L1 の λ は呼び出し側で降順に並べて渡す契約。ここでは並べ替えず、
    順序違反は InvalidArgumentError とする。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .errors import InvalidArgumentError
from .types import ArrayLike

# kind タグ（正規化後の値）。
L1 = "l1"
SORTED_L1 = "sorted_l1"

# 受け付ける表記ゆれ。小文字化・ハイフン除去のあとで引く。
_KIND_ALIASES = {
    "l1": L1,
    "sortedl1": SORTED_L1,
    "sorted_l1": SORTED_L1,
    "sl1": SORTED_L1,
}


def normalize_kind(kind: Any) -> str:
    """ペナルティ種別の表記を正規化する。

    Raises:
        InvalidArgumentError: 未知の種別が指定された場合。
    """

    if not isinstance(kind, str):
        raise InvalidArgumentError(f"ペナルティ種別は文字列である必要があります: {kind!r}")
    key = kind.strip().lower().replace("-", "_")
    if key not in _KIND_ALIASES:
        raise InvalidArgumentError(
            f"未知のペナルティ種別です: {kind!r}（'L1' または 'SortedL1' を指定してください）"
        )
    return _KIND_ALIASES[key]


def soft_threshold(y: np.ndarray, thresh: Any) -> np.ndarray:
    """要素ごとのソフト閾値処理 sign(y) * max(|y| - thresh, 0)。"""
    return np.sign(y) * np.maximum(np.abs(y) - thresh, 0.0)


def prox_sorted_l1(y: ArrayLike, thresh: ArrayLike) -> np.ndarray:
    """sorted-L1（OWL）ノルム sum_i thresh_i |y|_(i) の近接写像を返す。

    手順:
        1. |y| を降順に並べる置換 order と符号 sign(y) を記録する
        2. s_i = |y|_(i) - thresh_i を作る
        3. 単調非増加・非負の錐へ等調射影する（pool-adjacent-violators）。
           隣接グループの平均が非増加を破る限り併合し、最後に負値を 0 に切り上げる
        4. 置換を戻し、符号を掛け直す

    スタック上のグループ（開始位置・終了位置・和・平均）を併合していくため O(K)。

    Args:
        y: 入力ベクトル（形状 (K,)）。
        thresh: 降順・非負の閾値ベクトル（形状 (K,)）。通常は t * λ。

    Returns:
        近接点 v（形状 (K,)）。
    """
    y_arr = np.asarray(y, dtype=float).reshape(-1)
    thresh_arr = np.asarray(thresh, dtype=float).reshape(-1)
    n = y_arr.size
    if thresh_arr.size != n:
        raise InvalidArgumentError("thresh の長さが y と一致しません。")
    if n == 0:
        return y_arr.copy()

    sign = np.sign(y_arr)
    abs_y = np.abs(y_arr)

    # 安定ソートにしておくと同値の要素は元の添字順に並ぶ。
    order = np.argsort(-abs_y, kind="stable")
    s = abs_y[order] - thresh_arr

    # グループのスタック。top はスタック先頭の位置。
    starts = np.empty(n, dtype=int)
    ends = np.empty(n, dtype=int)
    sums = np.empty(n, dtype=float)
    avgs = np.empty(n, dtype=float)
    top = -1
    for i in range(n):
        top += 1
        starts[top] = i
        ends[top] = i
        sums[top] = s[i]
        avgs[top] = s[i]
        # 直前のグループ平均が現在以下なら非増加が崩れるので併合する。
        while top > 0 and avgs[top - 1] <= avgs[top]:
            sums[top - 1] += sums[top]
            ends[top - 1] = ends[top]
            avgs[top - 1] = sums[top - 1] / (ends[top - 1] - starts[top - 1] + 1)
            top -= 1

    z = np.empty(n, dtype=float)
    for g in range(top + 1):
        z[starts[g] : ends[g] + 1] = max(avgs[g], 0.0)

    out = np.empty(n, dtype=float)
    out[order] = sign[order] * z
    return out


@dataclass(frozen=True, eq=False)
class PenaltyOperator:
    """ペナルティのタグ付きレコード。

    kind:
        - "l1": lam はスカラー（形状 () の配列）
        - "sorted_l1": lam は長さ K の降順・非負ベクトル

    直接生成するより l1 / sorted_l1 / make_penalty を使うこと（検証を通すため）。
    """

    kind: str
    lam: np.ndarray

    @classmethod
    def l1(cls, lam: ArrayLike) -> "PenaltyOperator":
        """L1 ペナルティを生成する。lam はちょうど 1 つの非負値。"""

        lam_arr = np.asarray(lam, dtype=float)
        if lam_arr.size != 1:
            raise InvalidArgumentError(
                f"L1 の lambda はスカラー 1 つである必要があります（{lam_arr.size} 個）。"
            )
        value = float(lam_arr.reshape(-1)[0])
        if not np.isfinite(value) or value < 0.0:
            raise InvalidArgumentError("L1 の lambda は有限の非負値である必要があります。")
        return cls(kind=L1, lam=np.asarray(value, dtype=float))

    @classmethod
    def sorted_l1(
        cls, lam: ArrayLike, n_weights: Optional[int] = None
    ) -> "PenaltyOperator":
        """sorted-L1 ペナルティを生成する。

        Args:
            lam: 長さ K の降順・非負の重み列。
            n_weights: 問題次元 K。与えた場合は長さを照合する。

        Raises:
            InvalidArgumentError: 長さ不一致、非有限値、負値、非降順の場合。
                並べ替えて救済はしない。
        """

        lam_arr = np.asarray(lam, dtype=float).reshape(-1)
        if n_weights is not None and lam_arr.size != int(n_weights):
            raise InvalidArgumentError(
                f"SortedL1 の lambda の長さ {lam_arr.size} が次元 K={int(n_weights)} と一致しません。"
            )
        if lam_arr.size == 0:
            raise InvalidArgumentError("SortedL1 の lambda が空です。")
        if np.any(~np.isfinite(lam_arr)):
            raise InvalidArgumentError("SortedL1 の lambda に NaN/inf が含まれています。")
        if np.any(lam_arr < 0.0):
            raise InvalidArgumentError("SortedL1 の lambda は非負である必要があります。")
        if np.any(np.diff(lam_arr) > 0.0):
            raise InvalidArgumentError("SortedL1 の lambda は降順（非増加）である必要があります。")
        return cls(kind=SORTED_L1, lam=lam_arr)

    def prox(self, y: ArrayLike, t: float) -> np.ndarray:
        """prox(y, t) = argmin_v 0.5||y - v||^2 + t * pen(v)。"""

        y_arr = np.asarray(y, dtype=float)
        if self.kind == L1:
            return soft_threshold(y_arr, float(t) * float(self.lam))
        return prox_sorted_l1(y_arr, float(t) * self.lam)

    def value(self, w: ArrayLike) -> float:
        """ペナルティ値 pen(w) を返す。"""

        abs_w = np.abs(np.asarray(w, dtype=float).reshape(-1))
        if self.kind == L1:
            return float(self.lam) * float(np.sum(abs_w))
        return float(self.lam @ np.sort(abs_w)[::-1])

    def dual_infeasibility(self, alpha: ArrayLike) -> float:
        """alpha が双対ノルム球からはみ出している量（非負）を返す。

        - L1: max(max_i |alpha_i| - λ, 0)
        - sorted-L1: |alpha| を降順に並べた sa について max(max(cumsum(sa - λ)), 0)
        """

        abs_alpha = np.abs(np.asarray(alpha, dtype=float).reshape(-1))
        if abs_alpha.size == 0:
            return 0.0
        if self.kind == L1:
            return max(float(np.max(abs_alpha)) - float(self.lam), 0.0)
        sa = np.sort(abs_alpha)[::-1]
        return max(float(np.max(np.cumsum(sa - self.lam))), 0.0)


def make_penalty(
    kind: Any, lam: ArrayLike, n_weights: Optional[int] = None
) -> PenaltyOperator:
    """種別タグと λ から PenaltyOperator を組み立てる。"""

    normalized = normalize_kind(kind)
    if normalized == L1:
        return PenaltyOperator.l1(lam)
    return PenaltyOperator.sorted_l1(lam, n_weights)
