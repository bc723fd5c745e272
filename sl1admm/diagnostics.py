"""反復ごとの診断レコードと、その受け手（シンク）。

ソルバは 1 反復ごとに IterationRecord を作り、登録されたシンク（IterationRecord を
受け取る任意の callable）に渡すだけで、表示方法は知らない。
シンクの有無は反復の軌跡に影響しない。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationRecord:
    """1 反復分の診断値。"""

    iteration: int
    obj_p: float
    obj_d: float
    pdgap: float
    infeas_p: float
    infeas_d: float
    rho: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


DiagnosticsSink = Callable[[IterationRecord], None]


class HistoryRecorder:
    """レコードを列ごとのリストとして蓄積するシンク。"""

    keys = ("iteration", "obj_p", "obj_d", "pdgap", "infeas_p", "infeas_d", "rho")

    def __init__(self) -> None:
        self.history: Dict[str, List[Any]] = {key: [] for key in self.keys}

    def __call__(self, record: IterationRecord) -> None:
        for key, value in record.as_dict().items():
            self.history[key].append(value)

    def __len__(self) -> int:
        return len(self.history["iteration"])


class TableReporter:
    """反復表を logging に流すシンク。

    最初のレコードを受け取った時点でヘッダを出し、以降 every 反復ごとに 1 行出す。
    """

    header_titles = ("iter", "obj_p", "obj_d", "pdgap", "infeas_p", "infeas_d", "rho")
    header_format = "{:>6} {:>13} {:>13} {:>10} {:>10} {:>10} {:>9}"
    row_format = "{:>6d} {:>13.6e} {:>13.6e} {:>10.3e} {:>10.3e} {:>10.3e} {:>9.2e}"

    def __init__(
        self,
        title: str = "ADMM",
        every: int = 1,
        log: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ) -> None:
        self.title = title
        self.every = max(1, int(every))
        self.log = log or logger
        self.level = level
        self._started = False

    @property
    def separator(self) -> str:
        return "-" * len(self.header_format.format(*self.header_titles))

    def _print_header(self) -> None:
        self.log.log(self.level, self.title)
        self.log.log(self.level, self.header_format.format(*self.header_titles))
        self.log.log(self.level, self.separator)

    def __call__(self, record: IterationRecord) -> None:
        if not self._started:
            self._print_header()
            self._started = True
        if record.iteration % self.every and record.iteration != 1:
            return
        self.log.log(
            self.level,
            self.row_format.format(
                record.iteration,
                record.obj_p,
                record.obj_d,
                record.pdgap,
                record.infeas_p,
                record.infeas_d,
                record.rho,
            ),
        )
