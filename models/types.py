from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class HeroSystemType(Enum):
    """Hero System 擲骰類型"""
    NORMAL = "n"
    KILLING = "k"
    TO_HIT = "h"


# 算術修正

@dataclass(frozen=True)
class Add:
    value: int


@dataclass(frozen=True)
class Subtract:
    value: int


@dataclass(frozen=True)
class Multiply:
    value: int


@dataclass(frozen=True)
class Divide:
    value: int


@dataclass(frozen=True)
class DivideNumber:
    """數字寫在骰子前面的除法（"200 / 2d4"）：value 除以骰子總和"""
    value: int


# 骰數變動修正

@dataclass(frozen=True)
class Explode:
    threshold: Optional[int] = None


@dataclass(frozen=True)
class ExplodeIndefinite:
    threshold: Optional[int] = None


@dataclass(frozen=True)
class Reroll:
    threshold: int


@dataclass(frozen=True)
class RerollIndefinite:
    threshold: int


@dataclass(frozen=True)
class RerollGreater:
    threshold: int


@dataclass(frozen=True)
class RerollGreaterIndefinite:
    threshold: int


# 挑選修正

@dataclass(frozen=True)
class Drop:
    count: int


@dataclass(frozen=True)
class KeepHigh:
    count: int


@dataclass(frozen=True)
class KeepLow:
    count: int


@dataclass(frozen=True)
class KeepMiddle:
    count: int


# 成功計數

@dataclass(frozen=True)
class Target:
    value: int


@dataclass(frozen=True)
class TargetLower:
    value: int


@dataclass(frozen=True)
class Failure:
    value: int


@dataclass(frozen=True)
class Botch:
    threshold: Optional[int] = None


@dataclass(frozen=True)
class Cancel:
    """最大面抵銷 1（World of Darkness 的 10 抵銷 1）"""
    pass


# 額外骰組

@dataclass(frozen=True)
class AddDice:
    spec: "RollSpecification"


@dataclass(frozen=True)
class SubtractDice:
    spec: "RollSpecification"


@dataclass(frozen=True)
class MultiplyDice:
    spec: "RollSpecification"


@dataclass(frozen=True)
class DivideDice:
    spec: "RollSpecification"


# 遊戲系統

@dataclass(frozen=True)
class WrathGlory:
    difficulty: Optional[int] = None
    use_total: bool = False
    wrath_dice: int = 1


@dataclass(frozen=True)
class Fudge:
    pass


@dataclass(frozen=True)
class Godbound:
    use_straight_damage: bool = False


@dataclass(frozen=True)
class HeroSystem:
    kind: HeroSystemType


@dataclass(frozen=True)
class DarkHeresy:
    pass


@dataclass(frozen=True)
class Shadowrun:
    pass


@dataclass(frozen=True)
class CyberpunkRed:
    pass


@dataclass(frozen=True)
class Witcher:
    pass


@dataclass(frozen=True)
class CypherSystem:
    level: int


@dataclass(frozen=True)
class SavageWorlds:
    pass


@dataclass(frozen=True)
class MarvelMultiverse:
    edges: int = 0
    troubles: int = 0


@dataclass(frozen=True)
class Silhouette:
    pass


@dataclass(frozen=True)
class BraveNewWorld:
    pass


@dataclass(frozen=True)
class ConanSkill:
    pass


Modifier = Union[
    Add, Subtract, Multiply, Divide, DivideNumber,
    Explode, ExplodeIndefinite, Reroll, RerollIndefinite,
    RerollGreater, RerollGreaterIndefinite,
    Drop, KeepHigh, KeepLow, KeepMiddle,
    Target, TargetLower, Failure, Botch, Cancel,
    AddDice, SubtractDice, MultiplyDice, DivideDice,
    WrathGlory, Fudge, Godbound, HeroSystem, DarkHeresy, Shadowrun,
    CyberpunkRed, Witcher, CypherSystem,
    SavageWorlds, MarvelMultiverse, Silhouette, BraveNewWorld, ConanSkill,
]

ARITHMETIC_MODIFIERS = (Add, Subtract, Multiply, Divide, DivideNumber)
DICE_ALTERING_MODIFIERS = (
    Explode, ExplodeIndefinite, Reroll, RerollIndefinite,
    RerollGreater, RerollGreaterIndefinite,
)
SELECTION_MODIFIERS = (Drop, KeepHigh, KeepLow, KeepMiddle)
# 會在成功數之前逐骰套用算術的計數修正
COUNTING_MODIFIERS = (Target, TargetLower, Failure, Botch)
SUCCESS_MODIFIERS = COUNTING_MODIFIERS + (WrathGlory,)
NESTED_DICE_MODIFIERS = (AddDice, SubtractDice, MultiplyDice, DivideDice)
# 自己擲骰、不走一般流程的系統
POOL_SYSTEM_MODIFIERS = (SavageWorlds, MarvelMultiverse, Silhouette, BraveNewWorld, ConanSkill)
SYSTEM_MODIFIERS = (
    WrathGlory, Fudge, Godbound, HeroSystem, Shadowrun,
    CyberpunkRed, Witcher, CypherSystem,
) + POOL_SYSTEM_MODIFIERS


@dataclass(frozen=True)
class RollSpecification:
    """單一擲骰指令"""
    count: int
    sides: int
    modifiers: Tuple[Modifier, ...] = ()
    comment: Optional[str] = None
    label: Optional[str] = None
    private: bool = False
    simple: bool = False
    no_results: bool = False
    unsorted: bool = False
    original_expression: Optional[str] = None

    @property
    def description(self) -> str:
        return f"{self.count}d{self.sides}"


@dataclass(frozen=True)
class DiceGroup:
    """顯示用的骰組"""
    description: str
    rolls: Tuple[int, ...]
    dropped: Tuple[int, ...] = ()
    # "base"、"add"、"subtract"、"multiply"、"divide" 或 "result"
    origin: str = "base"


# 遊戲系統結果

@dataclass(frozen=True)
class FudgeOutcome:
    symbols: Tuple[str, ...]


@dataclass(frozen=True)
class GodboundOutcome:
    damage: int
    straight: bool = False


@dataclass(frozen=True)
class WrathGloryOutcome:
    wrath_die: int
    icons: int = 0
    exalted_icons: int = 0
    difficulty: Optional[int] = None
    passed: Optional[bool] = None
    total: Optional[int] = None  # 僅在 use_total 模式
    wrath_dice: Tuple[int, ...] = ()


@dataclass(frozen=True)
class HeroSystemOutcome:
    kind: HeroSystemType
    body: Optional[int] = None
    stun: Optional[int] = None
    multiplier: Optional[int] = None


@dataclass(frozen=True)
class SavageWorldsOutcome:
    trait_total: int
    wild_total: int
    trait_kept: bool
    snake_eyes: bool = False


@dataclass(frozen=True)
class MarvelOutcome:
    marvel_die: int
    fantastic: bool = False


@dataclass(frozen=True)
class CypherOutcome:
    level: int
    target: int
    passed: bool


SystemOutcome = Union[
    FudgeOutcome, GodboundOutcome, WrathGloryOutcome, HeroSystemOutcome,
    SavageWorldsOutcome, MarvelOutcome, CypherOutcome,
]


@dataclass(frozen=True)
class RollResult:
    """骰子結果"""
    individual_rolls: Tuple[int, ...]
    kept_rolls: Tuple[int, ...]
    dropped_rolls: Tuple[int, ...] = ()
    dice_groups: Tuple[DiceGroup, ...] = ()
    total: int = 0
    successes: Optional[int] = None
    failures: Optional[int] = None
    botches: Optional[int] = None
    notes: Tuple[str, ...] = ()
    system: Optional[SystemOutcome] = None
    comment: Optional[str] = None
    label: Optional[str] = None
    private: bool = False
    simple: bool = False
    no_results: bool = False
    unsorted: bool = False
    original_expression: Optional[str] = None
