"""WandB への反復診断の送信。

WandB は任意依存（extras: wandb）。ソルバ本体は WandB を知らず、
WandBLogger を診断シンクとして run に渡したときだけ IterationRecord が送られる。
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .diagnostics import IterationRecord

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


def _import_wandb():
    try:
        return importlib.import_module("wandb")
    except ImportError as exc:
        raise RuntimeError(
            "wandb がインストールされていません。"
            " `pip install wandb` を実行するか、WANDB_PROJECT / WANDB_ENABLED を外してください。"
        ) from exc


@dataclass
class WandBLogger:
    """ADMM の反復記録と最終サマリを 1 つの WandB run に送る。

    インスタンスはそのまま診断シンクとして使える（logger(record)）。
    """

    project: str
    name: Optional[str] = None
    _wandb: Any = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, name: str = "sl1admm-run"
    ) -> Optional["WandBLogger"]:
        """WANDB_PROJECT / WANDB_ENABLED が指定されていればロガーを返す。

        どちらも無い場合、または wandb を import できない場合は None。
        """

        env = os.environ if env is None else env
        project = env.get("WANDB_PROJECT")
        enabled = env.get("WANDB_ENABLED", "").lower() in _TRUTHY
        if not (project or enabled):
            return None
        try:
            _import_wandb()
        except RuntimeError:
            logger.warning("wandb is not importable; skipping WandB logging")
            return None
        return cls(project=project or "sl1admm", name=name)

    def start(self, config: Optional[Dict[str, Any]] = None) -> None:
        self._wandb = _import_wandb()
        self._wandb.init(project=self.project, name=self.name, config=config)

    def __call__(self, record: IterationRecord) -> None:
        if self._wandb is None:
            return
        row = record.as_dict()
        step = int(row.pop("iteration"))
        self._wandb.log({f"admm/{key}": value for key, value in row.items()}, step=step)

    def log_summary(self, summary: Mapping[str, Any]) -> None:
        # 最終値は系列ではなく run の summary に置く（status のような文字列も含むため）。
        if self._wandb is None:
            return
        for key, value in summary.items():
            self._wandb.run.summary[f"summary/{key}"] = value

    def finish(self) -> None:
        if self._wandb is None:
            return
        self._wandb.finish()
        self._wandb = None
