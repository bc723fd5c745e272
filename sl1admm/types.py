"""型定義。

ソルバ内部はすべて NumPy 配列で計算するが、入口では list / tuple / pandas など
「配列のように扱える」入力も受け付けるため、ArrayLike を緩い別名として定義している。
"""

from typing import Any

# ArrayLike:
# - 「配列のように扱える」入力を表す型。
# - 入口で np.asarray により float 配列へ正規化されることを前提にしている。
ArrayLike = Any
