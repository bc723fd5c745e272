"""CLI エントリポイント。

目的:
    設定ファイル（TOML/JSON）と CSV データから問題（回帰 / ポートフォリオ）を組み立て、
    ADMM で解いて結果を表示・保存するためのコマンドライン実行口を提供する。

設定ファイルの例（TOML）:

    problem = "portfolio"      # または "regression"
    penalty = "SortedL1"       # または "L1"
    lambda = [0.3, 0.2, 0.1]   # L1 ならスカラー
    phi = 1.0                  # portfolio のみ
    response = "y"             # regression の目的変数列

    [solver]
    max_iter = 10000
    tol_infeas = 1e-5
    tol_rel_gap = 1e-5
    verbose = true

データ CSV:
    - regression: 特徴量列 + 目的変数列（response）
    - portfolio: 1 列目を行ラベルとする K x K の共分散行列と、ラベル "mu" の期待リターン行

想定される例外:
    - 設定ファイルが存在しない: FileNotFoundError
    - JSON/TOML の構文エラー: パーサ由来の例外
    - 入力不正: InvalidArgumentError
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

try:
    import matplotlib.pyplot as plt
except ImportError:
    plt = None

from sl1admm.config import SolverConfig, load_config
from sl1admm.logger import WandBLogger
from sl1admm.model import solve_portfolio, solve_regression
from sl1admm.solver import ADMMResult


def _read_regression(data: pd.DataFrame, response: str) -> Tuple[list, np.ndarray, np.ndarray]:
    if response not in data.columns:
        raise ValueError(f"Missing response column {response!r} in data.")
    feature_cols = [col for col in data.columns if col != response]
    X = data[feature_cols].to_numpy(dtype=float)
    Y = data[response].to_numpy(dtype=float)
    return feature_cols, X, Y


def _read_portfolio(data: pd.DataFrame) -> Tuple[list, np.ndarray, np.ndarray]:
    if "mu" not in data.index:
        raise ValueError("Portfolio data must contain a row labelled 'mu'.")
    mu = data.loc["mu"].to_numpy(dtype=float)
    cov = data.drop(index="mu")
    Sigma = cov.loc[list(data.columns)].to_numpy(dtype=float)
    return list(data.columns), Sigma, mu


def run_from_config(
    config: Dict[str, Any], data_path: Path, diagnostics=None
) -> Tuple[list, ADMMResult]:
    """設定辞書とデータパスから問題を解き、(ラベル, 結果) を返す。"""

    problem = str(config.get("problem", "regression")).lower()
    penalty = config.get("penalty", "L1")
    lam = config.get("lambda", 0.0)
    solver_config = SolverConfig.from_mapping(config.get("solver", {}))

    if problem == "regression":
        data = pd.read_csv(data_path)
        labels, X, Y = _read_regression(data, str(config.get("response", "y")))
        result = solve_regression(
            X, Y, penalty, lam, solver_config, diagnostics=diagnostics
        )
    elif problem == "portfolio":
        data = pd.read_csv(data_path, index_col=0)
        labels, Sigma, mu = _read_portfolio(data)
        result = solve_portfolio(
            Sigma,
            mu,
            float(config.get("phi", 1.0)),
            penalty,
            lam,
            solver_config,
            diagnostics=diagnostics,
        )
    else:
        raise ValueError(f"Unknown problem type: {problem!r}")
    return labels, result


def main(argv: Optional[Sequence[str]] = None) -> None:
    """コマンドライン引数を解釈し、問題を解いて結果を表示する。

    Args:
        argv: 引数リスト。None の場合は `sys.argv` を argparse が参照する。
    """

    parser = argparse.ArgumentParser(description="Sum-to-one sparse ADMM runner")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.toml"),
        help="Path to a TOML or JSON config file.",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=Path("data/simulated_data.csv"),
        help="Path to a CSV dataset (regression features or covariance + mu row).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write result JSON (optional).",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Save a bar plot of the weights (requires matplotlib).",
    )
    args = parser.parse_args(argv)

    # ライブラリは basicConfig を呼ばないので、CLI 側でハンドラを用意する。
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s: %(message)s")

    config = load_config(args.config)

    # WandB ログの準備（任意）。
    wandb_logger = WandBLogger.from_env()
    if wandb_logger is not None:
        wandb_logger.start(config={"config": config})

    print("\n=== Run parameters ===")
    print(
        {
            "config_path": str(args.config),
            "data_path": str(args.data),
            "output_path": str(args.output) if args.output is not None else None,
            "plot": bool(args.plot),
            "config": config,
        }
    )

    labels, result = run_from_config(config, args.data, diagnostics=wandb_logger)

    weights = pd.Series(result.w, index=labels, name="weight")
    pd.set_option("display.max_rows", 200)
    print("\n=== Estimated weights ===")
    print(weights)
    print("\n=== Summary ===")
    summary = {
        "status": result.status,
        "n_iter": result.n_iter,
        "objective": result.objective,
        "penalty": result.penalty,
        "sum_w": float(np.sum(result.w)),
        "rho": result.rho,
    }
    print(summary)
    if result.history["pdgap"]:
        print("\n=== ADMM history (last) ===")
        print({key: values[-1] for key, values in result.history.items()})

    if args.plot:
        if plt is None:
            print("matplotlib が利用できないため重みのプロットをスキップします。")
        else:
            fig, ax = plt.subplots(figsize=(8, 4))
            weights.plot.bar(ax=ax)
            ax.axhline(0.0, color="black", linewidth=0.8)
            ax.set_ylabel("weight")
            ax.set_title(f"Weights ({result.status})")
            ax.grid(True, linestyle=":", alpha=0.6)
            output_path = Path("weights.png")
            fig.tight_layout()
            fig.savefig(output_path, dpi=150)
            print(f"Saved weight plot to {output_path}")

    if args.output is not None:
        output_path = args.output
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "data_path": str(args.data),
            "labels": labels,
            "w": result.w.tolist(),
            "alpha": result.alpha.tolist(),
            "beta": result.beta,
            "summary": summary,
            "history": result.history,
            "config": config,
        }
        with output_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        print(f"Saved result JSON to {output_path}")

    if wandb_logger is not None:
        wandb_logger.log_summary(summary)
        wandb_logger.finish()


if __name__ == "__main__":
    main()
