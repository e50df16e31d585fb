"""
成本配置持久化模块。
两份 JSON 文档：分类成本 (合并到默认成本之上) 与单条成本覆盖 (稀疏)。
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Union

from ebay_orders.pricing.engine import merge_cost_map, to_finite

COST_MAP_FILE = "cost_map_v2.json"
ROW_OVERRIDE_FILE = "row_cost_override_v2.json"

STATE_DIR_ENV = "EBAY_ORDERS_STATE_DIR"
DEFAULT_STATE_DIR = ".ebay_orders"


def default_state_dir() -> Path:
    return Path(os.environ.get(STATE_DIR_ENV) or DEFAULT_STATE_DIR)


class CostStateStore:
    """
    本地成本状态存储。
    读取失败（文件损坏、格式不对）时打印警告并回退到默认值，不影响分析。
    """

    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(directory) if directory else default_state_dir()

    @property
    def cost_map_path(self) -> Path:
        return self.directory / COST_MAP_FILE

    @property
    def overrides_path(self) -> Path:
        return self.directory / ROW_OVERRIDE_FILE

    def load_cost_map(self) -> Dict[str, float]:
        return merge_cost_map(self._read(self.cost_map_path))

    def load_overrides(self) -> Dict[str, float]:
        overrides = {}
        for rid, value in self._read(self.overrides_path).items():
            v = to_finite(value)
            if v is not None:
                overrides[str(rid)] = v
        return overrides

    def save_cost_map(self, cost_map: Dict[str, float]) -> None:
        self._write(self.cost_map_path, cost_map)

    def save_overrides(self, overrides: Dict[str, float]) -> None:
        self._write(self.overrides_path, overrides)

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"警告: 读取 {path} 失败，使用默认值: {e}")
            return {}
        if not isinstance(data, dict):
            print(f"警告: {path} 不是 JSON 对象，使用默认值")
            return {}
        return data

    def _write(self, path: Path, data: Dict[str, float]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, path)
