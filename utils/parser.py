"""
骰子表達式解析

流程：別名展開 -> 以分號拆成多次擲骰 -> 擲骰組偵測 -> 單一表達式解析。
單一表達式先剝掉旗標、標籤與備註，再經詞法分析成記號後逐一解讀。
"""

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from models.types import (
    Add, AddDice, Botch, BraveNewWorld, Cancel, ConanSkill, CyberpunkRed,
    CypherSystem, DarkHeresy, Divide, DivideDice, DivideNumber, Drop, Explode,
    ExplodeIndefinite, Failure, Fudge, Godbound, HeroSystem, HeroSystemType,
    KeepHigh, KeepLow, KeepMiddle, MarvelMultiverse, Modifier, Multiply,
    MultiplyDice, Reroll, RerollGreater, RerollGreaterIndefinite,
    RerollIndefinite, RollSpecification, SavageWorlds, Shadowrun, Silhouette,
    Subtract, SubtractDice, Target, TargetLower, Witcher, WrathGlory,
    DICE_ALTERING_MODIFIERS, SELECTION_MODIFIERS, SYSTEM_MODIFIERS,
)
from utils.aliases import expand
from utils.config import DEFAULT_LIMITS, DiceLimits
from utils.errors import ParseError

MAX_NUMBER = 2**31 - 1
MAX_MARVEL_REROLLS = 100
SAVAGE_WORLDS_DICE = (4, 6, 8, 10, 12)

NUMBER = "number"
OPERATOR = "operator"
WORD = "word"


@dataclass(frozen=True)
class Token:
    """詞法記號"""
    kind: str
    text: str


_TOKEN_RE = re.compile(r"\s*(?:(?P<operator>[+\-*/])|(?P<word>[a-z0-9%.]+))")
_DICE_RE = re.compile(r"^(\d*)d(\d+|%)")
_FLAG_RE = re.compile(r"^(p|s|nr|ul)(?:\s+|$)", re.IGNORECASE)
_LABEL_RE = re.compile(r"^\(([^)]*)\)\s*")
_SET_RE = re.compile(r"^(\d+)\s+(\S.*)$", re.DOTALL)
_LEADING_TERM_RE = re.compile(r"^[^\s+\-*/]+")
_ADVANTAGE_TERM_RE = re.compile(r"^[+-]d(?:\d+|%)(?![\w%])")

_FLAG_NAMES = {"p": "private", "s": "simple", "nr": "no_results", "ul": "unsorted"}

# 最長前綴優先：ie 在 e 之前、irg 在 ir 之前、km/kl 在 k 之前、tl 在 t 之前，
# 系統關鍵字整體處理，單字母的 c 放最後
_MODIFIER_PREFIXES: Tuple[re.Pattern, ...] = tuple(re.compile(p) for p in (
    r"wng\d*(?:w\d+)?t?",
    r"fudge",
    r"df",
    r"gbs",
    r"gb",
    r"hs[nkh]",
    r"dh",
    r"cpr",
    r"cs\d*",
    r"conan",
    r"wit",
    r"bnw",
    r"sil",
    r"shadowrun",
    r"sw",
    r"mm[et]\d*",
    r"mm",
    r"ie\d*",
    r"irg\d*",
    r"ir\d*",
    r"km\d*",
    r"kl\d*",
    r"k\d*",
    r"tl\d*",
    r"rg\d*",
    r"e\d*",
    r"r\d*",
    r"d\d*",
    r"t\d*",
    r"f\d*",
    r"b\d*",
    r"c",
))

_COUNTED_MODIFIER_RE = re.compile(r"^(ie|irg|ir|km|kl|k|tl|rg|e|r|d|t|f|b)(\d*)$")
_WRATH_GLORY_RE = re.compile(r"^wng(\d*)(?:w(\d+))?(t?)$")
_CYPHER_RE = re.compile(r"^cs(\d*)$")
_MARVEL_RE = re.compile(r"^mm([et])(\d*)$")

_COUNTED_MODIFIERS = {
    "irg": RerollGreaterIndefinite,
    "ir": RerollIndefinite,
    "rg": RerollGreater,
    "r": Reroll,
    "km": KeepMiddle,
    "kl": KeepLow,
    "k": KeepHigh,
    "d": Drop,
    "tl": TargetLower,
    "t": Target,
    "f": Failure,
}

_ZERO_ERRORS = {
    "ie": "Cannot explode on 0",
    "e": "Cannot explode on 0",
    "irg": "Cannot reroll on 0 - invalid threshold",
    "rg": "Cannot reroll on 0 - invalid threshold",
    "ir": "Cannot reroll on 0",
    "r": "Cannot reroll on 0",
    "km": "Cannot keep 0 dice",
    "kl": "Cannot keep 0 dice",
    "k": "Cannot keep 0 dice",
    "d": "Cannot drop 0 dice",
    "tl": "Target lower value must be greater than 0",
    "t": "Target value must be greater than 0",
}

_KEYWORD_MODIFIERS = {
    "fudge": Fudge(),
    "df": Fudge(),
    "gb": Godbound(use_straight_damage=False),
    "gbs": Godbound(use_straight_damage=True),
    "hsn": HeroSystem(HeroSystemType.NORMAL),
    "hsk": HeroSystem(HeroSystemType.KILLING),
    "hsh": HeroSystem(HeroSystemType.TO_HIT),
    "dh": DarkHeresy(),
    "c": Cancel(),
    "cpr": CyberpunkRed(),
    "wit": Witcher(),
    "conan": ConanSkill(),
    "bnw": BraveNewWorld(),
    "sil": Silhouette(),
    "shadowrun": Shadowrun(),
    "sw": SavageWorlds(),
    "mm": MarvelMultiverse(),
}

# 跟在額外骰組後面時，這些修正只作用在該骰組上
_PER_DIE_MODIFIERS = DICE_ALTERING_MODIFIERS + SELECTION_MODIFIERS

_NESTED_DICE = {"+": AddDice, "-": SubtractDice, "*": MultiplyDice, "/": DivideDice}


def tokenize(text: str) -> List[Token]:
    """
    把表達式拆成記號，緊湊寫法（"4d6+2"）與空格寫法（"4d6 + 2"）結果相同
    """
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            bad = text[pos:].lstrip()[0]
            raise ParseError(f"Unexpected character '{bad}' in '{text}'")
        if match.group("operator"):
            tokens.append(Token(OPERATOR, match.group("operator")))
        elif match.group("word").isdigit():
            tokens.append(Token(NUMBER, match.group("word")))
        else:
            tokens.append(Token(WORD, match.group("word")))
        pos = match.end()
    return tokens


def split_modifier_cluster(cluster: str) -> List[str]:
    """
    把黏在一起的修正拆開，例如 "e6k8" -> ["e6", "k8"]
    無法完整拆開時原樣回傳整串，交給解讀步驟報錯
    """
    pieces = []
    remaining = cluster
    while remaining:
        for prefix in _MODIFIER_PREFIXES:
            match = prefix.match(remaining)
            if match:
                pieces.append(match.group(0))
                remaining = remaining[match.end():]
                break
        else:
            return [cluster]
    return pieces


def _to_int(text: str) -> int:
    value = int(text)
    if value > MAX_NUMBER:
        raise ParseError(f"Number too large: {text}")
    return value


def _wrath_glory(match: re.Match) -> WrathGlory:
    difficulty = _to_int(match.group(1)) if match.group(1) else None
    wrath_dice = _to_int(match.group(2)) if match.group(2) else 1
    if not 1 <= wrath_dice <= 5:
        raise ParseError(f"Wrath dice count must be 1-5, got {wrath_dice}")
    return WrathGlory(difficulty=difficulty, use_total=bool(match.group(3)), wrath_dice=wrath_dice)


def _cypher(match: re.Match) -> CypherSystem:
    if not match.group(1):
        raise ParseError("Modifier 'cs' requires a number")
    level = _to_int(match.group(1))
    if not 1 <= level <= 10:
        raise ParseError(f"Cypher System difficulty level must be 1-10, got {level}")
    return CypherSystem(level)


def _marvel(match: re.Match) -> MarvelMultiverse:
    count = _to_int(match.group(2)) if match.group(2) else 1
    if count > MAX_MARVEL_REROLLS:
        raise ParseError(f"Maximum {MAX_MARVEL_REROLLS} edges or troubles allowed")
    if match.group(1) == "e":
        return MarvelMultiverse(edges=count)
    return MarvelMultiverse(troubles=count)


def interpret_modifier(piece: str) -> Modifier:
    """把單一修正記號轉成修正物件"""
    if piece in _KEYWORD_MODIFIERS:
        return _KEYWORD_MODIFIERS[piece]

    if piece.isdigit():
        return Add(_to_int(piece))

    for pattern, build in ((_WRATH_GLORY_RE, _wrath_glory), (_CYPHER_RE, _cypher), (_MARVEL_RE, _marvel)):
        match = pattern.match(piece)
        if match:
            return build(match)

    match = _COUNTED_MODIFIER_RE.match(piece)
    if not match:
        raise ParseError(f"Unknown modifier '{piece}'")

    prefix, digits = match.groups()
    value = _to_int(digits) if digits else None

    if value == 0 and prefix in _ZERO_ERRORS:
        raise ParseError(_ZERO_ERRORS[prefix])

    if prefix == "e":
        return Explode(value)
    if prefix == "ie":
        return ExplodeIndefinite(value)
    if prefix == "b":
        return Botch(value)

    if value is None:
        raise ParseError(f"Modifier '{prefix}' requires a number")
    return _COUNTED_MODIFIERS[prefix](value)


def _arithmetic(operator: str, value: int) -> Modifier:
    if operator == "+":
        return Add(value)
    if operator == "-":
        return Subtract(value)
    if operator == "*":
        return Multiply(value)
    if value == 0:
        raise ParseError("Cannot divide by zero")
    return Divide(value)


def _leading_number(operator: str, value: int) -> List[Modifier]:
    """數字寫在骰子前面（"4 + 4d10"、"200 / 2d4"）時改寫成對骰子總和的運算"""
    if operator == "+":
        return [Add(value)]
    if operator == "-":
        return [Multiply(-1), Add(value)]
    if operator == "*":
        return [Multiply(value)]
    return [DivideNumber(value)]


def _parse_dice_token(text: str, limits: DiceLimits) -> Tuple[int, int, str]:
    """解析 "[N]d<S|%>"，回傳 (骰數, 面數, 黏在後面的修正)"""
    match = _DICE_RE.match(text)
    if not match:
        raise ParseError(f"Invalid dice expression '{text}'")

    count = _to_int(match.group(1)) if match.group(1) else 1
    sides = 100 if match.group(2) == "%" else _to_int(match.group(2))

    if count < 1:
        raise ParseError("Dice count must be at least 1")
    if count > limits.max_dice_count:
        raise ParseError(f"Maximum {limits.max_dice_count} dice allowed")
    if sides < 1:
        raise ParseError("Dice must have at least 1 side")
    if sides > limits.max_dice_sides:
        raise ParseError(f"Maximum {limits.max_dice_sides} sides allowed")

    return count, sides, text[match.end():]


def _check_system_dice(count: int, sides: int, system: Modifier):
    """自帶擲骰規則的系統只接受特定骰子"""
    if isinstance(system, SavageWorlds):
        if count != 1 or sides not in SAVAGE_WORLDS_DICE:
            raise ParseError("Savage Worlds trait die must be d4, d6, d8, d10, or d12")
    elif isinstance(system, CyberpunkRed):
        if (count, sides) != (1, 10):
            raise ParseError("Cyberpunk Red mechanics only work with 1d10")
    elif isinstance(system, Witcher):
        if (count, sides) != (1, 10):
            raise ParseError("Witcher mechanics only work with 1d10")
    elif isinstance(system, CypherSystem):
        if (count, sides) != (1, 20):
            raise ParseError("Cypher System rolls must be 1d20")
    elif isinstance(system, MarvelMultiverse):
        if (count, sides) != (3, 6):
            raise ParseError("Marvel Multiverse rolls must be 3d6")
    elif isinstance(system, Silhouette):
        if sides != 6 or not 1 <= count <= 10:
            raise ParseError(f"Silhouette dice count must be 1-10, got {count}")
    elif isinstance(system, BraveNewWorld):
        if sides != 6:
            raise ParseError("Brave New World dice pools must be d6")
    elif isinstance(system, ConanSkill):
        if sides != 20 or not 2 <= count <= 5:
            raise ParseError(f"Conan skill rolls support 2-5 dice, got {count}")


class _ExpressionBuilder:
    """依記號順序累積修正"""

    def __init__(self):
        self.modifiers: List[Modifier] = []
        # 目前可接收逐骰修正的額外骰組位置
        self.open_dice: Optional[int] = None

    def add(self, modifier: Modifier):
        self.modifiers.append(modifier)
        self.open_dice = None

    def add_dice(self, operator: str, spec: RollSpecification):
        self.modifiers.append(_NESTED_DICE[operator](spec))
        self.open_dice = len(self.modifiers) - 1

    def add_cluster(self, cluster: str):
        for piece in split_modifier_cluster(cluster):
            modifier = interpret_modifier(piece)
            if self.open_dice is not None and isinstance(modifier, _PER_DIE_MODIFIERS):
                nested = self.modifiers[self.open_dice]
                spec = replace(nested.spec, modifiers=nested.spec.modifiers + (modifier,))
                self.modifiers[self.open_dice] = type(nested)(spec)
            else:
                self.add(modifier)


def _starts_with_number(tokens: List[Token]) -> bool:
    return (
        len(tokens) >= 3
        and tokens[0].kind == NUMBER
        and tokens[1].kind == OPERATOR
        and tokens[2].kind == WORD
        and bool(_DICE_RE.match(tokens[2].text))
    )


def parse_expression(tokens: List[Token], limits: DiceLimits) -> Tuple[int, int, Tuple[Modifier, ...]]:
    """
    解析記號序列，第一個記號必須是骰子，或是「數字 運算子 骰子」
    """
    if not tokens:
        raise ParseError("No dice expression found")

    builder = _ExpressionBuilder()
    if _starts_with_number(tokens):
        for modifier in _leading_number(tokens[1].text, _to_int(tokens[0].text)):
            builder.add(modifier)
        tokens = tokens[2:]

    first = tokens[0]
    if first.kind != WORD:
        raise ParseError(f"Invalid dice expression '{first.text}'")
    count, sides, fused = _parse_dice_token(first.text, limits)

    if fused:
        builder.add_cluster(fused)

    i = 1
    while i < len(tokens):
        token = tokens[i]
        if token.kind == OPERATOR:
            if i + 1 >= len(tokens):
                raise ParseError(f"Missing value after '{token.text}'")
            operand = tokens[i + 1]
            i += 2
            if operand.kind == NUMBER:
                builder.add(_arithmetic(token.text, _to_int(operand.text)))
            elif operand.kind == WORD and _DICE_RE.match(operand.text):
                n, s, nested_fused = _parse_dice_token(operand.text, limits)
                builder.add_dice(token.text, RollSpecification(count=n, sides=s))
                if nested_fused:
                    builder.add_cluster(nested_fused)
            else:
                raise ParseError(f"Invalid value after '{token.text}': '{operand.text}'")
        elif token.kind == NUMBER:
            builder.add(Add(_to_int(token.text)))
            i += 1
        else:
            builder.add_cluster(token.text)
            i += 1

    systems = [m for m in builder.modifiers if isinstance(m, SYSTEM_MODIFIERS)]
    if len(systems) > 1:
        raise ParseError("Only one game system modifier allowed per roll")
    if systems:
        _check_system_dice(count, sides, systems[0])

    return count, sides, tuple(builder.modifiers)


def _strip_flags(text: str) -> Tuple[dict, str]:
    """剝掉開頭的 p / s / nr / ul 旗標"""
    flags = {}
    while True:
        match = _FLAG_RE.match(text)
        if not match:
            return flags, text
        flags[_FLAG_NAMES[match.group(1).lower()]] = True
        text = text[match.end():]


def _strip_label(text: str) -> Tuple[Optional[str], str]:
    """剝掉開頭的 (標籤)，標籤前後的空白不保留"""
    match = _LABEL_RE.match(text)
    if not match:
        return None, text
    return match.group(1).strip(), text[match.end():]


def _strip_comment(text: str) -> Tuple[Optional[str], str]:
    index = text.find("!")
    if index < 0:
        return None, text
    return text[index + 1:].strip(), text[:index]


def _expand_fully(text: str, limits: DiceLimits, depth: int) -> Tuple[str, int]:
    """反覆展開別名直到不再符合"""
    while True:
        expansion = expand(text)
        if expansion is None:
            return text, depth
        depth += 1
        if depth > limits.max_alias_depth:
            raise ParseError("Alias expansion too deep")
        text = expansion


def _expand_leading_term(body: str, limits: DiceLimits, depth: int) -> str:
    """展開開頭的別名詞（"+d20 + 3"、"attack +5" 之類）"""
    while True:
        body, depth = _expand_fully(body, limits, depth)
        match = _ADVANTAGE_TERM_RE.match(body) or _LEADING_TERM_RE.match(body)
        if not match:
            return body
        expansion = expand(match.group(0))
        if expansion is None:
            return body
        depth += 1
        if depth > limits.max_alias_depth:
            raise ParseError("Alias expansion too deep")
        body = f"{expansion} {body[match.end():].strip()}".strip()


def _parse_segment(text: str, limits: DiceLimits, depth: int) -> List[RollSpecification]:
    """解析一段不含分號的請求，可能是擲骰組"""
    flags, rest = _strip_flags(text.strip())
    label, rest = _strip_label(rest)
    comment, rest = _strip_comment(rest)
    body, depth = _expand_fully(rest.strip(), limits, depth)
    body = body.strip().lower()

    set_count = None
    match = _SET_RE.match(body)
    if match and match.group(2)[0] not in "+-*/":
        set_count = int(match.group(1))
        if not limits.min_roll_sets <= set_count <= limits.max_roll_sets:
            raise ParseError(
                f"Set count must be between {limits.min_roll_sets} and {limits.max_roll_sets}"
            )
        more_flags, body = _strip_flags(match.group(2))
        flags.update(more_flags)
        _, body = _strip_label(body)

    body = _expand_leading_term(body, limits, depth)
    if not body:
        raise ParseError("No dice expression found")

    count, sides, modifiers = parse_expression(tokenize(body), limits)
    spec = RollSpecification(
        count=count,
        sides=sides,
        modifiers=modifiers,
        comment=comment,
        label=label,
        **flags
    )

    if set_count is None:
        return [spec]
    return [replace(spec, label=f"Set {i}") for i in range(1, set_count + 1)]


def parse(text: str, limits: Optional[DiceLimits] = None) -> List[RollSpecification]:
    """
    解析完整請求，回傳一個或多個擲骰指令
    """
    limits = limits or DEFAULT_LIMITS
    text = text.strip()
    if not text:
        raise ParseError("No dice expression found")
    if len(text) > limits.max_input_length:
        raise ParseError(f"Input too long (maximum {limits.max_input_length} characters)")

    text, depth = _expand_fully(text, limits, 0)

    if ";" not in text:
        return _parse_segment(text, limits, depth)

    segments = [segment.strip() for segment in text.split(";")]
    if len(segments) > limits.max_semicolon_rolls:
        raise ParseError(f"Maximum of {limits.max_semicolon_rolls} separate rolls allowed")

    specs = []
    for segment in segments:
        if not segment:
            raise ParseError("Empty roll between semicolons")
        segment_text, segment_depth = _expand_fully(segment, limits, depth)
        for spec in _parse_segment(segment_text, limits, segment_depth):
            specs.append(replace(spec, original_expression=segment))
    return specs
