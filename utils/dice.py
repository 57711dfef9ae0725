from typing import List, Optional

from models.types import RollResult
from utils.config import DiceLimits
from utils.parser import parse
from utils.roller import resolve


def parse_and_roll(text: str, rng=None, limits: Optional[DiceLimits] = None) -> List[RollResult]:
    """
    解析並擲骰，回傳每個擲骰指令的結果

    任何一段解析失敗時整個請求失敗（拋出 ParseError / ResolutionError）
    """
    specs = parse(text, limits)
    return [resolve(spec, rng, limits) for spec in specs]
