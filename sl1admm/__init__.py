"""sl1admm パッケージ。

和が 1 の制約付きで、二次形式 + スパース化ペナルティ（L1 / sorted-L1）を ADMM で
最小化する。外部に公開する API をここで再エクスポートする。
利用者は基本的に `from sl1admm import solve_regression` の形で import できる。
"""

from .config import SolverConfig, load_config
from .diagnostics import HistoryRecorder, IterationRecord, TableReporter
from .errors import InvalidArgumentError, NumericalSingularityError
from .linsys import LinearSystemCache
from .model import (
    SparsePortfolio,
    SparseRegression,
    solve,
    solve_portfolio,
    solve_regression,
)
from .penalty import PenaltyOperator, make_penalty, prox_sorted_l1, soft_threshold
from .program import QuadraticProgram, portfolio_program, regression_program
from .solver import (
    STATUS_ITERATION_LIMIT,
    STATUS_OPTIMAL,
    ADMMResult,
    ADMMSolver,
)

__all__ = [
    "ADMMResult",
    "ADMMSolver",
    "HistoryRecorder",
    "InvalidArgumentError",
    "IterationRecord",
    "LinearSystemCache",
    "NumericalSingularityError",
    "PenaltyOperator",
    "QuadraticProgram",
    "STATUS_ITERATION_LIMIT",
    "STATUS_OPTIMAL",
    "SolverConfig",
    "SparsePortfolio",
    "SparseRegression",
    "TableReporter",
    "load_config",
    "make_penalty",
    "portfolio_program",
    "prox_sorted_l1",
    "regression_program",
    "soft_threshold",
    "solve",
    "solve_portfolio",
    "solve_regression",
]
