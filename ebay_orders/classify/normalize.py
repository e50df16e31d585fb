import re
from typing import Optional

_WS_RE = re.compile(r"\s+")


def normalize_title(text: Optional[str]) -> str:
    """去掉首尾空白，并把连续空白（含制表符、不间断空格）合并为一个空格。"""
    if not text:
        return ""
    return _WS_RE.sub(" ", str(text)).strip()
