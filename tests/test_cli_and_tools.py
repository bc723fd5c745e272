from __future__ import annotations

import json
import sys
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "scripts"))

import main as cli
from generate_lambda_grid import generate_lambda_sequence
from generation.generator import DataGenerator
from sl1admm.config import load_config
from sl1admm.diagnostics import IterationRecord
from sl1admm.logger import WandBLogger
from sl1admm.penalty import PenaltyOperator


def expect_raises(exc_type, func, *args, **kwargs) -> None:
    try:
        func(*args, **kwargs)
    except exc_type:
        return
    raise AssertionError(f"{func.__name__} did not raise {exc_type.__name__}")


def test_load_config_formats():
    with tempfile.TemporaryDirectory() as tmp:
        tmp_path = Path(tmp)
        toml_path = tmp_path / "config.toml"
        toml_path.write_text(
            'problem = "regression"\nlambda = 0.5\n[solver]\nmax_iter = 7\n',
            encoding="utf-8",
        )
        config = load_config(toml_path)
        if config["solver"]["max_iter"] != 7 or config["lambda"] != 0.5:
            raise AssertionError(f"unexpected TOML config: {config}")

        json_path = tmp_path / "config.json"
        json_path.write_text(json.dumps({"penalty": "SortedL1"}), encoding="utf-8")
        if load_config(json_path) != {"penalty": "SortedL1"}:
            raise AssertionError("unexpected JSON config")

        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text("a: 1\n", encoding="utf-8")
        expect_raises(ValueError, load_config, yaml_path)
        expect_raises(FileNotFoundError, load_config, tmp_path / "missing.toml")


def test_cli_regression_run_writes_json():
    with tempfile.TemporaryDirectory() as tmp:
        tmp_path = Path(tmp)
        data_path = tmp_path / "data.csv"
        pd.DataFrame({"x1": [1.0, 0.0], "x2": [0.0, 1.0], "y": [1.0, 0.0]}).to_csv(
            data_path, index=False
        )
        config_path = tmp_path / "config.toml"
        config_path.write_text(
            'problem = "regression"\npenalty = "L1"\nlambda = 0.01\n'
            "[solver]\nmax_iter = 5000\n",
            encoding="utf-8",
        )
        output_path = tmp_path / "out" / "result.json"
        cli.main(
            [
                "--config",
                str(config_path),
                "--data",
                str(data_path),
                "--output",
                str(output_path),
            ]
        )
        with output_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

    if payload["summary"]["status"] != "Optimal":
        raise AssertionError(f"status: {payload['summary']['status']}")
    if payload["labels"] != ["x1", "x2"]:
        raise AssertionError(f"labels: {payload['labels']}")
    if np.max(np.abs(np.asarray(payload["w"]) - np.array([1.0, 0.0]))) > 5e-3:
        raise AssertionError(f"w: {payload['w']}")
    if abs(payload["summary"]["objective"] - 0.01) > 1e-4:
        raise AssertionError(f"objective: {payload['summary']['objective']}")


def test_cli_portfolio_reads_covariance_and_mu_row():
    labels = ["a", "b", "c"]
    frame = pd.DataFrame(np.eye(3), index=labels, columns=labels)
    frame.loc["mu"] = [0.0, 0.0, 0.0]
    with tempfile.TemporaryDirectory() as tmp:
        data_path = Path(tmp) / "portfolio.csv"
        frame.to_csv(data_path)
        config = {
            "problem": "portfolio",
            "penalty": "SortedL1",
            "lambda": [0.3, 0.2, 0.1],
            "phi": 1.0,
            "solver": {"max_iter": 5000, "unknown_option": True},
        }
        names, result = cli.run_from_config(config, data_path)

    if names != labels:
        raise AssertionError(f"labels: {names}")
    if result.status != "Optimal":
        raise AssertionError(f"status: {result.status}")
    if np.max(np.abs(result.w - 1.0 / 3.0)) > 1e-4:
        raise AssertionError(f"w: {result.w}")


def test_data_generator_outputs():
    df, raw = DataGenerator({"problem": "regression", "n": 30, "k": 6, "n_active": 2}).simulate()
    if list(df.columns) != [f"x{j}" for j in range(1, 7)] + ["y"]:
        raise AssertionError(f"columns: {list(df.columns)}")
    if abs(float(raw["w_true"].sum()) - 1.0) > 1e-12 or np.count_nonzero(raw["w_true"]) != 2:
        raise AssertionError(f"w_true: {raw['w_true']}")

    df, raw = DataGenerator({"problem": "portfolio", "n": 60, "k": 4}).simulate()
    if df.shape != (5, 4) or df.index[-1] != "mu":
        raise AssertionError(f"portfolio frame: {df.shape}, {list(df.index)}")
    Sigma = raw["Sigma"]
    if np.max(np.abs(Sigma - Sigma.T)) > 1e-12:
        raise AssertionError("Sigma is not symmetric")

    expect_raises(ValueError, DataGenerator, {"problem": "other"})


def test_lambda_sequences_are_valid_sorted_l1_weights():
    for kind in ("linear", "bh"):
        lam = generate_lambda_sequence(8, kind=kind, lam_max=0.3, lam_min=0.01, q=0.2)
        if len(lam) != 8 or abs(lam[0] - 0.3) > 1e-12:
            raise AssertionError(f"{kind}: {lam}")
        # 降順・非負であれば SortedL1 として受け付けられる
        PenaltyOperator.sorted_l1(lam, 8)
    expect_raises(ValueError, generate_lambda_sequence, 0)
    expect_raises(ValueError, generate_lambda_sequence, 3, kind="bh", q=1.5)
    expect_raises(ValueError, generate_lambda_sequence, 3, kind="other")


def test_wandb_logger_env_and_record_payload():
    if WandBLogger.from_env({}) is not None:
        raise AssertionError("WandB should stay off without WANDB_PROJECT / WANDB_ENABLED")

    class RecordingBackend:
        def __init__(self):
            self.logged = []

        def log(self, payload, step):
            self.logged.append((step, payload))

    wandb_logger = WandBLogger(project="test")
    record = IterationRecord(
        iteration=3, obj_p=1.0, obj_d=0.5, pdgap=0.5, infeas_p=0.1, infeas_d=0.0, rho=2.0
    )
    # start 前は何も送らない
    wandb_logger(record)

    backend = RecordingBackend()
    wandb_logger._wandb = backend
    wandb_logger(record)
    step, payload = backend.logged[0]
    if step != 3 or payload.get("admm/pdgap") != 0.5 or "admm/iteration" in payload:
        raise AssertionError(f"unexpected WandB payload: {step}, {payload}")


def main() -> None:
    test_load_config_formats()
    test_cli_regression_run_writes_json()
    test_cli_portfolio_reads_covariance_and_mu_row()
    test_data_generator_outputs()
    test_lambda_sequences_are_valid_sorted_l1_weights()
    test_wandb_logger_env_and_record_payload()
    print("OK: CLI / tooling checks passed")


if __name__ == "__main__":
    main()
