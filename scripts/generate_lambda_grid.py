#!/usr/bin/env python3
"""SortedL1 用 lambda 列の生成スクリプト

目的:
    長さ K の降順・非負の lambda 列を生成し、JSON に保存する。
    出力はそのまま設定ファイルの lambda に貼り付けられる。

使い方:
    # 線形に減少する列（lam_max から lam_min まで）
    python scripts/generate_lambda_grid.py --n-weights 10 --kind linear --lam-max 0.3 --lam-min 0.03

    # Benjamini-Hochberg 型の列 Φ^{-1}(1 - i q / (2K)) を lam-max 倍で正規化
    python scripts/generate_lambda_grid.py --n-weights 10 --kind bh --q 0.1 --lam-max 0.3
"""

import argparse
import json
from pathlib import Path

import numpy as np
from scipy.stats import norm


def generate_lambda_sequence(
    n_weights: int,
    kind: str = "linear",
    lam_max: float = 1.0,
    lam_min: float = 0.0,
    q: float = 0.1,
) -> list[float]:
    """降順の lambda 列を生成

    Args:
        n_weights: 列の長さ K
        kind: "linear" または "bh"
        lam_max: 先頭（最大）の値
        lam_min: 末尾（最小）の値（linear のみ）
        q: BH 列の水準（0 < q < 1、bh のみ）

    Returns:
        長さ K の非増加・非負のリスト
    """
    if n_weights <= 0:
        raise ValueError("n_weights must be positive")
    if lam_max < 0 or lam_min < 0 or lam_min > lam_max:
        raise ValueError("require 0 <= lam_min <= lam_max")

    if kind == "linear":
        values = np.linspace(lam_max, lam_min, n_weights)
    elif kind == "bh":
        if not (0.0 < q < 1.0):
            raise ValueError("q must be in (0, 1)")
        ranks = np.arange(1, n_weights + 1)
        raw = norm.ppf(1.0 - ranks * q / (2.0 * n_weights))
        raw = np.maximum(raw, 0.0)
        values = lam_max * raw / raw[0] if raw[0] > 0 else np.zeros(n_weights)
    else:
        raise ValueError(f"Unknown kind: {kind}")

    # 浮動小数の丸めで順序が崩れないように累積最小をとる。
    values = np.minimum.accumulate(values)
    return values.tolist()


def main() -> None:
    parser = argparse.ArgumentParser(description="SortedL1 lambda 列の生成")
    parser.add_argument("--n-weights", type=int, required=True, help="次元 K")
    parser.add_argument(
        "--kind",
        type=str,
        default="linear",
        choices=["linear", "bh"],
        help="列の種類（デフォルト: linear）",
    )
    parser.add_argument("--lam-max", type=float, default=1.0, help="最大値（デフォルト: 1.0）")
    parser.add_argument("--lam-min", type=float, default=0.0, help="最小値（linear、デフォルト: 0.0）")
    parser.add_argument("--q", type=float, default=0.1, help="BH 列の水準（デフォルト: 0.1）")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("lambda_sequence.json"),
        help="出力パス（デフォルト: lambda_sequence.json）",
    )

    args = parser.parse_args()

    lambda_values = generate_lambda_sequence(
        args.n_weights,
        args.kind,
        args.lam_max,
        args.lam_min,
        args.q,
    )

    data = {
        "description": f"SortedL1 lambda sequence ({args.kind}, K={args.n_weights})",
        "lambda": lambda_values,
    }

    with args.output.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    print(f"Generated {len(lambda_values)} lambda values:")
    print(f"  Range: {min(lambda_values):.6f} to {max(lambda_values):.6f}")
    print(f"Saved to: {args.output}")


if __name__ == "__main__":
    main()
