"""
标题分类模块。
用“特征提取 + 有序规则表”把商品标题映射到固定的分类集合，命中不到时归为 Other。

规则表自上而下匹配，第一条命中的规则生效。很多规则互相重叠
（例如同时含 "Master Ball" 和 "Ball Holo" 的标题必须归为 Master Ball），
所以规则的先后顺序就是优先级，修改时请整体审阅 DEFAULT_RULES。
"""
import re
from typing import Callable, Dict, Iterable, NamedTuple, Optional, Tuple

from ebay_orders.classify.normalize import normalize_title
from ebay_orders.models import OTHER_GROUP

Features = Dict[str, bool]

_FLAGS = re.IGNORECASE | re.ASCII


def _word(pattern: str) -> "re.Pattern[str]":
    return re.compile(rf"\b(?:{pattern})\b", _FLAGS)


# 单一关键词特征 (特征名 -> 单词边界正则)
FEATURE_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    "kfc": _word("kfc"),
    "sealed": _word("sealed"),
    "tag_team": _word(r"tag\s*team"),
    "trainer": _word("trainer|supporter|item"),
    "ocd": _word("ocd"),
    "master_ball": _word(r"master\s*ball"),
    "logo": _word("logo"),
    "reverse": _word("reverse"),
    "ball": _word("ball"),
    "holo": _word("holo"),
    "mix": _word("mix"),
    "ar": _word("ar"),
    "chr": _word("chr"),
    "sr": _word("sr"),
    "hr": _word("hr"),
    "rrr": _word("rrr"),
    "rr": _word("rr"),
    "vmax": _word("vmax"),
    "vstar": _word("vstar"),
    "v": _word("v"),
    "japanese": _word("japanese"),
    "vstar_universe": _word(r"vstar\s*universe"),
    "single": _word("singles?"),
    "lot": _word("lots?"),
}

# 其它稀有度标记：任意一个出现都会让 RR / RRR / VMAX 组合规则失效。
# 两个历史版本的标记集合不同，这里都保留，由 TitleClassifier 的参数决定使用哪一套。
RARITY_MARKERS_BASIC: Tuple[str, ...] = ("rrrr", "ur", "ssr")
RARITY_MARKERS_EXTENDED: Tuple[str, ...] = (
    "rrrr", "ur", "ssr", "sar", "csr", "ace", "ex", "gold", "secret",
)


class TitleRule(NamedTuple):
    name: str
    test: Callable[[Features], bool]


def _vu(f: Features) -> bool:
    return f["vstar_universe"]


# 有序规则表：顺序即优先级
DEFAULT_RULES: Tuple[TitleRule, ...] = (
    TitleRule("KFC Pack", lambda f: f["kfc"]),
    TitleRule("VSTAR Universe (Sealed)", lambda f: _vu(f) and f["sealed"]),
    TitleRule("Sealed", lambda f: f["sealed"]),
    # VSTAR Universe 有单独的成本口径，放在通用规则之前
    TitleRule("VSTAR Universe (Master Ball)", lambda f: _vu(f) and f["master_ball"]),
    TitleRule("VSTAR Universe (AR/CHR)", lambda f: _vu(f) and (f["ar"] or f["chr"])),
    TitleRule("VSTAR Universe (SR/HR)", lambda f: _vu(f) and (f["sr"] or f["hr"])),
    TitleRule("VSTAR Universe (Lots)", lambda f: _vu(f) and f["lot"]),
    TitleRule("VSTAR Universe (Singles)", lambda f: _vu(f) and f["single"]),
    TitleRule("VSTAR Universe", _vu),
    TitleRule("TAG TEAM", lambda f: f["tag_team"]),
    TitleRule("Trainer Item / Supporter", lambda f: f["trainer"]),
    TitleRule("OCD", lambda f: f["ocd"]),
    TitleRule("Master Ball", lambda f: f["master_ball"]),
    TitleRule("Logo Reverse Holo", lambda f: f["logo"] and f["reverse"]),
    TitleRule("Ball Holo", lambda f: f["ball"] and f["holo"]),
    TitleRule("Mix", lambda f: f["mix"]),
    TitleRule("AR/CHR", lambda f: f["ar"] or f["chr"]),
    TitleRule("SR/HR", lambda f: (f["sr"] or f["hr"]) and not f["ocd"]),
    TitleRule("Japanese", lambda f: f["japanese"]),
    # RR / RRR / VMAX 尽量排到最后，避免被其它稀有度误伤
    TitleRule(
        "RRR+VMAX",
        lambda f: f["rrr"] and f["vmax"] and not f["rr"] and not f["other_rarity"],
    ),
    TitleRule("RR+RRR", lambda f: f["rr"] and f["rrr"] and not f["other_rarity"]),
    TitleRule("RR Only", lambda f: f["rr"] and not f["rrr"] and not f["other_rarity"]),
    TitleRule("V/VMAX/VSTAR", lambda f: f["v"] or f["vmax"] or f["vstar"]),
)


class TitleClassifier:
    """
    标题分类器。纯函数语义：同一标题永远得到同一分类。

    参数:
    - rules: 有序规则表，默认 DEFAULT_RULES。
    - other_rarity_markers: 组合规则的排除关键词集合，默认 RARITY_MARKERS_EXTENDED。
    """

    def __init__(
        self,
        rules: Iterable[TitleRule] = DEFAULT_RULES,
        other_rarity_markers: Iterable[str] = RARITY_MARKERS_EXTENDED,
    ):
        self.rules: Tuple[TitleRule, ...] = tuple(rules)
        self.other_rarity_markers: Tuple[str, ...] = tuple(other_rarity_markers)
        self._rarity_patterns = [_word(re.escape(m)) for m in self.other_rarity_markers]

    @property
    def labels(self) -> Tuple[str, ...]:
        """全部分类名（含兜底的 Other），按规则顺序。"""
        return tuple(r.name for r in self.rules) + (OTHER_GROUP,)

    def extract_features(self, title: Optional[str]) -> Features:
        t = normalize_title(title)
        features = {key: bool(p.search(t)) for key, p in FEATURE_PATTERNS.items()}
        features["other_rarity"] = any(p.search(t) for p in self._rarity_patterns)
        return features

    def classify(self, title: Optional[str]) -> str:
        features = self.extract_features(title)
        for rule in self.rules:
            if rule.test(features):
                return rule.name
        return OTHER_GROUP


DEFAULT_CLASSIFIER = TitleClassifier()


def classify_title(title: Optional[str]) -> str:
    """使用默认规则表对标题分类。"""
    return DEFAULT_CLASSIFIER.classify(title)
