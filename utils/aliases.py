"""
遊戲系統別名展開

把各種系統的簡寫（"4cod"、"+d20"、"ed12" 等）改寫成標準骰子語法，
改寫結果再交給 utils.parser 解析。
"""

import re
from types import MappingProxyType
from typing import Callable, Optional, Tuple

from utils.logger import get_module_logger

logger = get_module_logger("aliases")


# Earthdawn 步數表（第 1 到 50 步）
EARTHDAWN_STEPS: Tuple[str, ...] = (
    "1d4 ie - 2",
    "1d4 ie - 1",
    "1d4 ie",
    "1d6 ie",
    "1d8 ie",
    "1d10 ie",
    "1d12 ie",
    "2d6 ie",
    "1d8 ie + 1d6 ie",
    "2d8 ie",
    "1d10 ie + 1d8 ie",
    "2d10 ie",
    "1d12 ie + 1d10 ie",
    "2d12 ie",
    "1d12 ie + 2d6 ie",
    "1d12 ie + 1d8 ie + 1d6 ie",
    "1d12 ie + 2d8 ie",
    "1d12 ie + 1d10 ie + 1d8 ie",
    "1d20 ie + 2d6 ie",
    "1d20 ie + 1d8 ie + 1d6 ie",
    "1d20 ie + 1d10 ie + 1d6 ie",
    "1d20 ie + 1d10 ie + 1d8 ie",
    "1d20 ie + 2d10 ie",
    "1d20 ie + 1d12 ie + 1d10 ie",
    "1d20 ie + 1d12 ie + 1d8 ie + 1d4 ie",
    "1d20 ie + 1d12 ie + 1d8 ie + 1d6 ie",
    "1d20 ie + 1d12 ie + 2d8 ie",
    "1d20 ie + 2d10 ie + 1d8 ie",
    "1d20 ie + 1d12 ie + 1d10 ie + 1d8 ie",
    "1d20 ie + 1d12 ie + 1d10 ie + 1d8 ie",
    "1d20 ie + 1d10 ie + 2d8 ie + 1d6 ie",
    "1d20 ie + 2d10 ie + 1d8 ie + 1d6 ie",
    "1d20 ie + 2d10 ie + 2d8 ie",
    "1d20 ie + 3d10 ie + 1d8 ie",
    "1d20 ie + 1d12 ie + 2d10 ie + 1d8 ie",
    "2d20 ie + 1d10 ie + 1d8 ie + 1d4 ie",
    "2d20 ie + 1d10 ie + 1d8 ie + 1d6 ie",
    "2d20 ie + 1d10 ie + 2d8 ie",
    "2d20 ie + 2d10 ie + 1d8 ie",
    "2d20 ie + 1d12 ie + 1d10 ie + 1d8 ie",
    "2d20 ie + 1d10 ie + 1d8 ie + 2d6 ie",
    "2d20 ie + 1d10 ie + 2d8 ie + 1d6 ie",
    "2d20 ie + 2d10 ie + 1d8 ie + 1d6 ie",
    "2d20 ie + 3d10 ie + 1d8 ie",
    "2d20 ie + 3d10 ie + 1d8 ie",
    "2d20 ie + 1d12 ie + 2d10 ie + 1d8 ie",
    "2d20 ie + 2d10 ie + 2d8 ie + 1d4 ie",
    "2d20 ie + 2d10 ie + 2d8 ie + 1d6 ie",
    "2d20 ie + 2d10 ie + 3d8 ie",
    "2d20 ie + 3d10 ie + 2d8 ie",
)

# 整字別名
STATIC_ALIASES = MappingProxyType({
    "age": "2d6 + 1d6",
    "dndstats": "6 4d6 k3",
    "attack": "1d20",
    "skill": "1d20",
    "save": "1d20",
    "gb": "1d20 gb",
    "gbs": "1d20 gbs",
    "hsn": "1d6 hsn",
    "hsk": "1d6 hsk",
    "hsh": "3d6 hsh",
    "3df": "3d3 fudge",
    "4df": "4d3 fudge",
    "dh": "1d10 dh",
    "wng": "1d6 wng",
    "cpr": "1d10 cpr",
    "wit": "1d10 wit",
})


def _signed(sign: Optional[str], value: Optional[str]) -> str:
    """把 (符號, 數值) 組回 "+2" 形式，沒有則回傳空字串"""
    if not sign or not value:
        return ""
    return f"{sign}{value}"


def _percentile_advantage(m: re.Match) -> str:
    # 十位骰取低為優勢
    keep = "kl1" if m.group(1) == "+" else "k1"
    return f"2d10 {keep} * 10 + 1d10 - 10"


def _advantage(m: re.Match) -> str:
    keep = "k1" if m.group(1) == "+" else "kl1"
    return f"2d{m.group(2)} {keep}"


def _hero_system(m: re.Match) -> Optional[str]:
    kind = m.group(2)
    if kind == "h":
        return "3d6 hsh"

    # "2.5hsk" 與 "2hsk1" 都表示多半顆骰
    whole, _, fraction = m.group(1).partition(".")
    dice = int(whole)
    half = (bool(fraction) and int(fraction) > 0) or (bool(m.group(3)) and int(m.group(3)) > 0)
    if dice == 0 and not half:
        return None
    if dice == 0:
        return f"1d3 hs{kind}"
    if half:
        return f"{dice}d6 + 1d3 hs{kind}"
    return f"{dice}d6 hs{kind}"


def _godbound_dice(m: re.Match) -> str:
    return f"{m.group(2)}d{m.group(3)} {m.group(1)}{_signed(m.group(4), m.group(5))}"


def _godbound_simple(m: re.Match) -> str:
    return f"1d20 {m.group(1)}{_signed(m.group(2), m.group(3))}"


def _wrath_glory(m: re.Match) -> str:
    difficulty = m.group(1) or ""
    wrath = f"w{m.group(2)}" if m.group(2) else ""
    use_total = "t" if m.group(5) else ""
    return f"{m.group(3)}d{m.group(4)} wng{difficulty}{wrath}{use_total}"


def _chronicles_of_darkness(m: re.Match) -> str:
    pool = m.group(1)
    variant = m.group(2)
    if variant == "8":
        expansion = f"{pool}d10 t7 ie10"
    elif variant == "9":
        expansion = f"{pool}d10 t6 ie10"
    elif variant == "r":
        expansion = f"{pool}d10 t8 ie10 r1"
    else:
        expansion = f"{pool}d10 t8 ie10"
    # 尾端的 ±N 加減在成功數上
    if m.group(3) and m.group(4):
        expansion += f" {m.group(3)} {m.group(4)}"
    return expansion


def _world_of_darkness(m: re.Match) -> str:
    expansion = f"{m.group(1)}d10 f1 ie10 t{m.group(2)}"
    if m.group(3):
        expansion += " c"
    if m.group(4) and m.group(5):
        expansion += f" {m.group(4)} {m.group(5)}"
    return expansion


def _marvel(m: re.Match) -> str:
    expansion = "3d6 mm"
    if m.group(2):
        expansion += f"{m.group(2)}{m.group(1)}"
    if m.group(3):
        expansion += f" {m.group(3).strip()}"
    return expansion


def _with_rest(expansion: str, rest: Optional[str]) -> str:
    """接回別名後面的算術（"cs 3 + 1"）"""
    if rest:
        return f"{expansion} {rest.strip()}"
    return expansion


def _earthdawn(m: re.Match) -> Optional[str]:
    step = int(m.group(1))
    if 1 <= step <= len(EARTHDAWN_STEPS):
        return EARTHDAWN_STEPS[step - 1]
    return None


def _exalted(m: re.Match) -> str:
    target = m.group(2) or "7"
    return f"{m.group(1)}d10 t{target} t10"


def _d6_system(m: re.Match) -> Optional[str]:
    dice = int(m.group(1))
    if dice < 1:
        return None
    # 骰池中有一顆是野骰
    if dice == 1:
        expansion = "1d6 ie"
    else:
        expansion = f"{dice - 1}d6 + 1d6 ie"
    if m.group(2):
        expansion += f" + {m.group(2)}"
    return expansion


def _dnd_check(m: re.Match) -> str:
    if m.group(2) and m.group(3):
        return f"1d20 {m.group(2)} {m.group(3)}"
    return "1d20"


AliasRule = Tuple[re.Pattern, Callable[[re.Match], Optional[str]]]

# 有參數的規則依序嘗試，重疊的樣式要先放較具體的
ALIAS_RULES: Tuple[AliasRule, ...] = (
    (re.compile(r"^([+-])d%$"), _percentile_advantage),
    (re.compile(r"^([+-])d(\d+)$"), _advantage),
    (re.compile(r"^(\d+(?:\.\d+)?)hs([nkh])(\d*)$"), _hero_system),
    (re.compile(r"^(gbs?)\s+(\d+)d(\d+)(?:\s*([+-])\s*(\d+))?$"), _godbound_dice),
    (re.compile(r"^(gbs?)(?:\s*([+-])\s*(\d+))?$"), _godbound_simple),
    (re.compile(r"^wng(?:\s+dn(\d+))?(?:\s+w(\d+))?\s+(\d+)d(\d+)(?:\s*!\s*(soak|exempt|dmg))?$"), _wrath_glory),
    (re.compile(r"^(\d+)cod([89r]?)(?:\s*([+-])\s*(\d+))?$"), _chronicles_of_darkness),
    (re.compile(r"^(\d+)wod(\d+)(c?)(?:\s*([+-])\s*(\d+))?$"), _world_of_darkness),
    (re.compile(r"^sw(\d+)$"), lambda m: f"1d{m.group(1)} sw"),
    (re.compile(r"^cs\s*(\d+)(\s*[+\-*/].*)?$"), lambda m: _with_rest(f"1d20 cs{m.group(1)}", m.group(2))),
    (re.compile(r"^conan(\d*)$"), lambda m: f"{m.group(1) or 2}d20 conan"),
    (re.compile(r"^mm(?:\s*(\d*)([et]))?(\s*[+\-*/].*)?$"), _marvel),
    (re.compile(r"^sil(\d+)$"), lambda m: f"{m.group(1)}d6 sil"),
    (re.compile(r"^bnw(\d+)$"), lambda m: f"{m.group(1)}d6 bnw"),
    (re.compile(r"^dh\s+(\d+)d(\d+)$"), lambda m: f"{m.group(1)}d{m.group(2)} ie{m.group(2)} dh"),
    (re.compile(r"^(\d+)df$"), lambda m: f"{m.group(1)}d3 fudge"),
    (re.compile(r"^(\d+)wh(\d+)\+$"), lambda m: f"{m.group(1)}d6 t{m.group(2)}"),
    (re.compile(r"^dd(\d)(\d)$"), lambda m: f"1d{m.group(1)} * 10 + 1d{m.group(2)}"),
    (re.compile(r"^(\d+)d%$"), lambda m: f"{m.group(1)}d100"),
    (re.compile(r"^sr(\d+)$"), lambda m: f"{m.group(1)}d6 t5 shadowrun"),
    (re.compile(r"^sp(\d+)$"), lambda m: f"{m.group(1)}d10 t8 ie10"),
    (re.compile(r"^(\d+)yz$"), lambda m: f"{m.group(1)}d6 t6"),
    (re.compile(r"^snm(\d+)$"), lambda m: f"{m.group(1)}d6 ie6 t4"),
    (re.compile(r"^ex(\d+)(?:t(\d+))?$"), _exalted),
    (re.compile(r"^ed(?:4e)?(\d+)$"), _earthdawn),
    (re.compile(r"^d6s(\d+)(?:\s*\+\s*(\d+))?$"), _d6_system),
    (re.compile(r"^(attack|skill|save)(?:\s*([+-])\s*(\d+))?$"), _dnd_check),
)


def expand(text: str) -> Optional[str]:
    """
    展開一層別名，沒有符合的別名時回傳 None
    """
    text = text.strip().lower()
    if not text:
        return None

    for pattern, rewrite in ALIAS_RULES:
        match = pattern.match(text)
        if match:
            expansion = rewrite(match)
            if expansion is not None:
                logger.debug(f"別名展開: {text} -> {expansion}")
            return expansion

    return STATIC_ALIASES.get(text)
