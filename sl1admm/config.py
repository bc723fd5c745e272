"""ソルバ設定の値オブジェクトと、設定ファイル（TOML/JSON）の読み込み。

目的:
    - 反復上限・許容誤差・rho などを SolverConfig として 1 か所にまとめ、
      ソルバ呼び出しごとに明示的に渡す（プロセス全体の状態にはしない）
    - 実験を「設定ファイルで再現可能」にするため、JSON/TOML を辞書としてロードする
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import tomllib

import numpy as np

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# 利用者向けの別名（camelCase）→ フィールド名。
_OPTION_ALIASES = {
    "maxIter": "max_iter",
    "tolInfeas": "tol_infeas",
    "tolRelGap": "tol_rel_gap",
    "timeLimit": "time_limit",
}


@dataclass(frozen=True)
class SolverConfig:
    """ADMM ソルバの設定。

    Attributes:
        max_iter: 反復の最大回数。
        tol_infeas: primal/dual 実行不能度の収束閾値。
        tol_rel_gap: 相対双対ギャップの収束閾値。
        rho: ADMM のペナルティ係数。None の場合は問題側のスペクトルノルム推定値を使う。
        verbose: True なら反復ごとの表を logging に出す。
        progress: True なら tqdm の進捗バーを出す。
        time_limit: 秒単位の打ち切り時間。None なら無制限。
    """

    max_iter: int = 10000
    tol_infeas: float = 1e-5
    tol_rel_gap: float = 1e-5
    rho: Optional[float] = None
    verbose: bool = False
    progress: bool = False
    time_limit: Optional[float] = None

    def __post_init__(self) -> None:
        # 設定ファイル由来の "abc" などはここで InvalidArgumentError に揃える。
        try:
            max_iter = int(self.max_iter)
            tol_infeas = float(self.tol_infeas)
            tol_rel_gap = float(self.tol_rel_gap)
            rho = None if self.rho is None else float(self.rho)
            time_limit = None if self.time_limit is None else float(self.time_limit)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"ソルバ設定に数値として解釈できない値があります: {exc}") from exc

        if max_iter <= 0:
            raise InvalidArgumentError("max_iter は正の整数である必要があります。")
        if not (tol_infeas > 0.0 and tol_rel_gap > 0.0):
            raise InvalidArgumentError("tol_infeas / tol_rel_gap は正である必要があります。")
        if rho is not None and not (np.isfinite(rho) and rho > 0.0):
            raise InvalidArgumentError("rho は正の有限値である必要があります。")
        if time_limit is not None and time_limit <= 0.0:
            raise InvalidArgumentError("time_limit は正である必要があります。")

        # frozen なので object.__setattr__ で正規化済みの値に置き換える。
        object.__setattr__(self, "max_iter", max_iter)
        object.__setattr__(self, "tol_infeas", tol_infeas)
        object.__setattr__(self, "tol_rel_gap", tol_rel_gap)
        object.__setattr__(self, "rho", rho)
        object.__setattr__(self, "time_limit", time_limit)

    @classmethod
    def from_mapping(
        cls, options: Optional[Mapping[str, Any]] = None, base: Optional["SolverConfig"] = None
    ) -> "SolverConfig":
        """既定値に options を上書きした設定を返す。

        認識できないキーは無視する（DEBUG ログのみ）。同じ項目が別名と正式名の両方で
        与えられた場合は、後に現れたものが勝つ。
        """

        base = base or cls()
        if not options:
            return base
        known = {f.name for f in fields(cls)}
        updates: Dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                logger.debug("Ignoring unrecognized solver option %r", key)
                continue
            updates[name] = value
        return replace(base, **updates)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Path) -> Dict[str, Any]:
    """設定ファイルを読み込み、Python の辞書として返す。

    Args:
        path: 設定ファイルへのパス。拡張子でフォーマットを判定する。

    Returns:
        設定内容を表す辞書。

    Raises:
        FileNotFoundError: 指定パスが存在しない場合。
        ValueError: 対応していない拡張子の場合。
        json.JSONDecodeError: JSON のパースに失敗した場合。
        tomllib.TOMLDecodeError: TOML のパースに失敗した場合。
    """

    path = Path(path)

    # 設定ファイルが存在しない場合は、早期に失敗させて原因を明確化する。
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    if path.suffix == ".toml":
        # tomllib.load はバイナリファイルオブジェクトを想定する。
        with path.open("rb") as handle:
            return tomllib.load(handle)

    if path.suffix == ".json":
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    # ここに到達するのは想定外の拡張子（.yaml など）。
    raise ValueError(f"Unsupported config format: {path.suffix}")
