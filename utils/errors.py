class DiceError(ValueError):
    """擲骰錯誤的基底類別"""


class ParseError(DiceError):
    """骰子表達式無法解析"""


class ResolutionError(DiceError):
    """擲骰過程中出錯"""
