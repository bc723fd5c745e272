import argparse
import json
import numpy as np
import pandas as pd


class DataGenerator:
    """
    回帰 / ポートフォリオ問題の合成データ生成器。

    regression:
        Y = X w* + ε,  ε ~ Normal(0, σ^2)
          - w* は n_active 個だけ非零で、和が 1 になるよう正規化する
          - 出力 CSV は x1..xK と目的変数列 y

    portfolio:
        n 期分のリターン R ~ Normal(m, diag(vol^2)) に 1 因子の共通成分を足し、
        標本共分散 Sigma と標本平均 mu を出力する
          - 出力 CSV は行ラベル付きの K x K 共分散 + "mu" 行

    設定パラメータ（configにて指定可能）
      - problem: "regression" または "portfolio"（デフォルト: "regression"）
      - n: サンプルサイズ / 期間数（デフォルト: 200）
      - k: 次元 K（デフォルト: 10）
      - n_active: 真の重みの非零数（regression、デフォルト: 3）
      - sigma: ノイズの標準偏差（regression、デフォルト: 0.1）
      - factor_vol: 共通因子のボラティリティ（portfolio、デフォルト: 0.02）
      - seed: 乱数シード（デフォルト: 42）
    """

    def __init__(self, config=None):
        cfg = config or {}
        self.problem = cfg.get("problem", "regression")
        self.n = cfg.get("n", 200)
        self.k = cfg.get("k", 10)
        self.n_active = cfg.get("n_active", 3)
        self.sigma = cfg.get("sigma", 0.1)
        self.factor_vol = cfg.get("factor_vol", 0.02)
        self.seed = cfg.get("seed", 42)

        if self.problem not in {"regression", "portfolio"}:
            raise ValueError(f"Unknown problem: {self.problem}")
        if not (1 <= self.n_active <= self.k):
            raise ValueError("n_active は 1 以上 k 以下にしてください")

    def true_weights(self, seed=None) -> np.ndarray:
        """和が 1 の疎な真の重み w* を生成。"""
        rng = np.random.default_rng(self.seed if seed is None else seed)
        w = np.zeros(self.k)
        active = rng.choice(self.k, size=self.n_active, replace=False)
        raw = rng.uniform(0.5, 1.5, size=self.n_active)
        w[active] = raw / raw.sum()
        return w

    def simulate_regression(self, seed=None):
        rng = np.random.default_rng(self.seed if seed is None else seed)
        w_true = self.true_weights(seed)
        X = rng.normal(0.0, 1.0, size=(self.n, self.k))
        Y = X @ w_true + rng.normal(0.0, self.sigma, size=self.n)

        df = pd.DataFrame(X, columns=[f"x{j}" for j in range(1, self.k + 1)])
        df["y"] = Y
        return df, {"X": X, "Y": Y, "w_true": w_true}

    def simulate_portfolio(self, seed=None):
        rng = np.random.default_rng(self.seed if seed is None else seed)
        means = rng.uniform(0.0, 0.01, size=self.k)
        vols = rng.uniform(0.01, 0.04, size=self.k)
        loadings = rng.uniform(0.5, 1.5, size=self.k)
        factor = rng.normal(0.0, self.factor_vol, size=self.n)
        idio = rng.normal(0.0, 1.0, size=(self.n, self.k)) * vols
        R = means + np.outer(factor, loadings) + idio

        Sigma = np.cov(R, rowvar=False)
        mu = R.mean(axis=0)
        labels = [f"a{j}" for j in range(1, self.k + 1)]
        df = pd.DataFrame(Sigma, index=labels, columns=labels)
        df.loc["mu"] = mu
        return df, {"Sigma": Sigma, "mu": mu, "returns": R}

    def simulate(self, seed=None):
        if self.problem == "regression":
            return self.simulate_regression(seed)
        return self.simulate_portfolio(seed)


def load_config(config_path: str) -> dict:
    """JSON設定ファイルの読み込み。"""
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def main():
    parser = argparse.ArgumentParser(
        description="回帰 / ポートフォリオ問題の合成データを生成"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="設定ファイル（JSON形式）のパス",
        default=None,
    )
    parser.add_argument(
        "--problem",
        type=str,
        choices=["regression", "portfolio"],
        default=None,
        help="問題の種類（設定ファイルより優先）",
    )
    parser.add_argument(
        "--output", type=str, help="出力CSVファイルのパス", default="simulated_data.csv"
    )
    args = parser.parse_args()

    config = load_config(args.config) if args.config else {}
    if args.problem is not None:
        config["problem"] = args.problem
    generator = DataGenerator(config)
    df, _ = generator.simulate()
    # portfolio は行ラベル（資産名と "mu"）を残す。
    df.to_csv(args.output, index=generator.problem == "portfolio")
    print(f"シミュレーションデータを {args.output} に保存しました。")


if __name__ == "__main__":
    main()
