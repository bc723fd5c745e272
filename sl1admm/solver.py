"""和が 1 の制約付きスパース二次計画を ADMM で解くソルバ。

問題:
    minimize  q(w) + pen(w)   subject to  sum_i w_i = 1

分離:
    w（二次部分）と v（ペナルティ部分）に分け、制約 w = v の乗数 alpha と
    sum(w) = 1 の乗数 beta を持つ拡張ラグランジアンを交互に最小化する。

責務:
    - ADMM 反復（w の線形ソルブ → v の prox 更新 → alpha, beta の双対更新）を回す
    - 主/双対目的関数・実行不能度・相対双対ギャップによる収束判定
    - 反復ごとの診断レコードをシンクへ渡し、履歴を記録する

設計意図:
    問題固有の部分は QuadraticProgram、ペナルティ固有の部分は PenaltyOperator に閉じ込め、
    ソルバは両者のインターフェースだけを使う。
    rho は 1 回の run の間は固定なので、係数行列の分解は LinearSystemCache で 1 回だけ行う。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from tqdm.auto import tqdm

from .config import SolverConfig
from .diagnostics import DiagnosticsSink, HistoryRecorder, IterationRecord, TableReporter
from .errors import InvalidArgumentError
from .linsys import LinearSystemCache
from .penalty import SORTED_L1, PenaltyOperator
from .program import QuadraticProgram
from .types import ArrayLike

logger = logging.getLogger(__name__)

STATUS_OPTIMAL = "Optimal"
STATUS_ITERATION_LIMIT = "Iteration limit reached"


@dataclass
class ADMMResult:
    """ADMM の実行結果。

    Attributes:
        w: 返却する重み（最終反復の v）。
        penalty: w におけるペナルティ値。
        alpha: 制約 w = v の双対変数。
        beta: 制約 sum(w) = 1 の双対変数。
        objective: 最終反復の主目的関数値 obj_p。
        status: "Optimal" または "Iteration limit reached"。
        n_iter: 実行した反復回数。
        rho: 使用した ADMM ペナルティ係数。
        history: 反復履歴（obj_p, obj_d, pdgap, infeas_p, infeas_d, rho のリスト）。
    """

    w: np.ndarray
    penalty: float
    alpha: np.ndarray
    beta: float
    objective: float
    status: str
    n_iter: int
    rho: float
    history: Dict[str, List[Any]] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.status == STATUS_OPTIMAL


class ADMMSolver:
    """QuadraticProgram と PenaltyOperator を受け取る汎用 ADMM ソルバ。"""

    def __init__(
        self,
        program: QuadraticProgram,
        penalty: PenaltyOperator,
        config: Optional[SolverConfig] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> None:
        # program: Q, c, q(w), 双対目的関数を提供する問題インスタンス。
        self.program = program

        # penalty: prox / value / dual_infeasibility を提供するペナルティ。
        self.penalty = penalty

        # config: 反復上限・許容誤差・rho など。
        self.config = config or SolverConfig()

        # diagnostics: 反復ごとの IterationRecord を受け取る任意のシンク。
        self.diagnostics = diagnostics

        K = self.program.n_weights
        if penalty.kind == SORTED_L1 and penalty.lam.size != K:
            raise InvalidArgumentError(
                f"SortedL1 の lambda の長さ {penalty.lam.size} が次元 K={K} と一致しません。"
            )

    def _initial_weights(self, init_w: Optional[ArrayLike]) -> np.ndarray:
        K = self.program.n_weights
        if init_w is None:
            return np.full(K, 1.0 / K, dtype=float)
        w0 = np.asarray(init_w, dtype=float)
        if w0.ndim == 2 and 1 in w0.shape:
            w0 = w0.reshape(-1)
        if w0.shape != (K,):
            raise InvalidArgumentError(
                f"init_w の形状 {w0.shape} が次元 K={K} と一致しません。"
            )
        if np.any(~np.isfinite(w0)):
            raise InvalidArgumentError("init_w に NaN/inf が含まれています。")
        return w0.copy()

    def run(self, init_w: Optional[ArrayLike] = None) -> ADMMResult:
        """ADMM 反復を最後（Optimal または反復上限）まで実行する。

        Args:
            init_w: 初期重み（長さ K）。None の場合は一様 1/K。

        Returns:
            ADMMResult。反復上限に達した場合も例外ではなく status で通知する。

        Raises:
            InvalidArgumentError: init_w の形状が不正な場合。
            NumericalSingularityError: 係数行列 Q + rho(I + ee^T) が分解できない場合。
        """

        cfg = self.config
        program = self.program
        penalty = self.penalty

        # 状態はすべてこの呼び出しの中で作り、呼び出し終了とともに破棄する。
        w = self._initial_weights(init_w)
        v = w.copy()
        alpha = np.zeros_like(w)
        beta = 0.0

        rho = float(cfg.rho) if cfg.rho is not None else program.default_rho()
        cache = LinearSystemCache(program.Q, rho)
        c = program.c

        recorder = HistoryRecorder()
        sinks: List[DiagnosticsSink] = [recorder]
        if cfg.verbose:
            sinks.append(TableReporter(title=f"ADMM ({program.name}, {penalty.kind})"))
        if self.diagnostics is not None:
            sinks.append(self.diagnostics)

        logger.info(
            "ADMM start: problem=%s penalty=%s K=%d rho=%.3e max_iter=%d",
            program.name,
            penalty.kind,
            program.n_weights,
            rho,
            int(cfg.max_iter),
        )

        status = STATUS_ITERATION_LIMIT
        obj_p = float("nan")
        n_iter = 0
        started = time.perf_counter()

        for admm_iter in tqdm(
            range(1, int(cfg.max_iter) + 1),
            desc="ADMM",
            leave=False,
            disable=not cfg.progress,
        ):
            # (1) w 更新: (Q + rho(I + ee^T)) w = c - alpha - beta e + rho (v + e)
            w = cache.solve(c - alpha - beta + rho * (v + 1.0))

            # (2) v 更新（prox）
            v = penalty.prox(w + alpha / rho, 1.0 / rho)

            # (3)(4) 双対更新
            alpha = alpha + rho * (w - v)
            sum_resid = float(np.sum(w)) - 1.0
            beta = beta + rho * sum_resid

            # (5)-(9) 主/双対目的関数、実行不能度、相対ギャップ
            obj_p = float(program.quadratic_term(w)) + penalty.value(w)
            obj_d = program.dual_objective(alpha, beta)
            infeas_p = max(float(np.max(np.abs(w - v))), abs(sum_resid))
            infeas_d = penalty.dual_infeasibility(alpha)
            pdgap = abs(obj_p - obj_d) / max(1.0, obj_p)
            n_iter = admm_iter

            record = IterationRecord(
                iteration=admm_iter,
                obj_p=obj_p,
                obj_d=obj_d,
                pdgap=pdgap,
                infeas_p=infeas_p,
                infeas_d=infeas_d,
                rho=rho,
            )
            for sink in sinks:
                sink(record)

            # (10) 収束判定
            if pdgap < cfg.tol_rel_gap and max(infeas_p, infeas_d) < cfg.tol_infeas:
                status = STATUS_OPTIMAL
                break

            if (
                cfg.time_limit is not None
                and time.perf_counter() - started > float(cfg.time_limit)
            ):
                logger.warning(
                    "ADMM stopped by time limit (%.1fs) at iteration %d",
                    float(cfg.time_limit),
                    admm_iter,
                )
                break

        logger.info(
            "ADMM finished: status=%s iterations=%d objective=%.6e",
            status,
            n_iter,
            obj_p,
        )

        return ADMMResult(
            w=v,
            penalty=penalty.value(v),
            alpha=alpha,
            beta=float(beta),
            objective=obj_p,
            status=status,
            n_iter=n_iter,
            rho=rho,
            history=recorder.history,
        )
