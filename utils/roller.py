"""
擲骰執行引擎

依固定階段處理修正：
1. 初始擲骰
2. 爆骰 / 重擲（改變骰數）
3. 保留 / 捨棄
4. 加總，Cyberpunk Red / Witcher 的大成功與大失敗
5. 算術、成功計數、額外骰組，之後才套用傷害系統（Godbound、Hero System）
6. 收尾：成功計數時總和歸零，保留骰由大到小排序

Savage Worlds、Marvel Multiverse、Silhouette、Brave New World、Conan
有自己的擲骰規則，不走上面的流程。
"""

import random
from dataclasses import replace
from typing import List, Optional, Tuple

from models.types import (
    Add, AddDice, Cancel, ConanSkill, CyberpunkRed, CypherOutcome,
    CypherSystem, DarkHeresy, DiceGroup, Divide, DivideDice,
    Drop, Explode, ExplodeIndefinite, Failure, Fudge, FudgeOutcome, Godbound,
    GodboundOutcome, HeroSystem, HeroSystemOutcome, HeroSystemType, KeepHigh,
    KeepMiddle, MarvelMultiverse, MarvelOutcome, Multiply, MultiplyDice,
    Reroll, RerollGreater, RerollGreaterIndefinite, RerollIndefinite,
    RollResult, RollSpecification, SavageWorlds, SavageWorldsOutcome,
    Shadowrun, Silhouette, Subtract, SubtractDice, Target, TargetLower,
    Witcher, WrathGlory, WrathGloryOutcome, BraveNewWorld,
    ARITHMETIC_MODIFIERS, COUNTING_MODIFIERS, NESTED_DICE_MODIFIERS,
    POOL_SYSTEM_MODIFIERS, SELECTION_MODIFIERS, SUCCESS_MODIFIERS,
)
from utils.config import DEFAULT_LIMITS, DiceLimits
from utils.errors import ResolutionError
from utils.logger import get_module_logger

logger = get_module_logger("roller")

MAX_EXPLOSIONS = 100
MAX_REROLLS = 100

FUDGE_SYMBOLS = {1: "-", 2: " ", 3: "+"}
FUDGE_VALUES = {1: -1, 2: 0, 3: 1}

_NESTED_ORIGINS = {
    AddDice: "add",
    SubtractDice: "subtract",
    MultiplyDice: "multiply",
    DivideDice: "divide",
}


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def godbound_chart(value: int) -> int:
    """Godbound 傷害表：1 以下=0，2-5=1，6-9=2，10 以上=4"""
    if value <= 1:
        return 0
    if value <= 5:
        return 1
    if value <= 9:
        return 2
    return 4


def hero_body(value: int) -> int:
    """Hero System 普通傷害每顆 d6 的 BODY：1=0，2-5=1，6=2"""
    if value <= 1:
        return 0
    if value >= 6:
        return 2
    return 1


def conan_damage(value: int) -> int:
    """Conan 戰鬥骰：1=1，2=2，3-4=0，5-6=1（另觸發效果）"""
    if value in (1, 2):
        return value
    if value >= 5:
        return 1
    return 0


def truncating_divide(total: int, divisor: int) -> int:
    """整數除法，向零取整"""
    if divisor == 0:
        raise ResolutionError("Cannot divide by zero")
    quotient = abs(total) // abs(divisor)
    return quotient if (total >= 0) == (divisor > 0) else -quotient


def apply_arithmetic(value: int, modifier) -> int:
    """對單一數值套用一個算術修正"""
    if isinstance(modifier, Add):
        return value + modifier.value
    if isinstance(modifier, Subtract):
        return value - modifier.value
    if isinstance(modifier, Multiply):
        return value * modifier.value
    if isinstance(modifier, Divide):
        return truncating_divide(value, modifier.value)
    if value == 0:
        raise ResolutionError("Cannot divide by zero (dice result was 0)")
    return truncating_divide(modifier.value, value)


def _combine(total: int, value: int, origin: str) -> int:
    """把額外骰組的總和併入"""
    if origin == "add":
        return total + value
    if origin == "subtract":
        return total - value
    if origin == "multiply":
        return total * value
    if value == 0:
        raise ResolutionError("Cannot divide by zero (dice result was 0)")
    return truncating_divide(total, value)


class _RollState:
    """單次擲骰的可變工作狀態，只存在於 resolve 內部"""

    def __init__(self, spec: RollSpecification, rng):
        self.spec = spec
        self.rng = rng
        self.pool: List[int] = []
        self.notes: List[str] = []
        self.explosions_left = MAX_EXPLOSIONS
        self.rerolls_left = MAX_REROLLS

    def roll(self, sides: Optional[int] = None) -> int:
        return self.rng.randint(1, sides or self.spec.sides)

    def explode(self, threshold: Optional[int], indefinite: bool):
        threshold = threshold or self.spec.sides
        dark_heresy = any(isinstance(m, DarkHeresy) for m in self.spec.modifiers)
        exploded = 0
        capped = False

        # 一般爆骰只檢查原有的骰子，無限爆骰連新骰也檢查
        end = None if indefinite else len(self.pool)
        i = 0
        while i < (len(self.pool) if end is None else end):
            if self.pool[i] >= threshold:
                if self.explosions_left == 0:
                    capped = True
                    break
                self.pool.append(self.roll())
                self.explosions_left -= 1
                exploded += 1
            i += 1

        if exploded:
            message = f"{_plural(exploded, 'die', 'dice')} exploded"
            if dark_heresy:
                message = f"RIGHTEOUS FURY! {message}"
            self.notes.append(message)
        if capped:
            logger.debug(f"爆骰達到上限: {self.spec.description}")
            self.notes.append(f"Maximum explosions reached ({MAX_EXPLOSIONS})")

    def exploding_chain(self, sides: int) -> List[int]:
        """擲一顆骰，擲出最大面就再擲一顆加上去"""
        rolls = [self.roll(sides)]
        while rolls[-1] == sides:
            if len(rolls) > MAX_EXPLOSIONS:
                self.notes.append(f"Maximum explosions reached ({MAX_EXPLOSIONS})")
                break
            rolls.append(self.roll(sides))
        return rolls

    def reroll(self, threshold: int, indefinite: bool, greater: bool = False):
        per_die_limit = MAX_REROLLS if indefinite else 1
        rerolled = 0
        capped = False

        def needs_reroll(value: int) -> bool:
            return value >= threshold if greater else value <= threshold

        for i in range(len(self.pool)):
            times = 0
            while needs_reroll(self.pool[i]) and times < per_die_limit:
                if self.rerolls_left == 0:
                    capped = True
                    break
                old = self.pool[i]
                self.pool[i] = self.roll()
                self.rerolls_left -= 1
                times += 1
                if times == 1:
                    self.notes.append(f"Rerolled {old} → {self.pool[i]}")
            if times:
                rerolled += 1
            if indefinite and times == per_die_limit and needs_reroll(self.pool[i]):
                capped = True
            if capped:
                break

        if rerolled:
            self.notes.append(f"{_plural(rerolled, 'die', 'dice')} rerolled")
        if capped:
            logger.debug(f"重擲達到上限: {self.spec.description}")
            self.notes.append(f"Maximum rerolls reached ({MAX_REROLLS})")

    def select(self, kept: List[int], modifier) -> List[int]:
        """回傳保留骰子的索引（依原始順序）"""
        pool = self.pool
        n = modifier.count
        if isinstance(modifier, Drop):
            if n > len(kept):
                self.notes.append(
                    f"Cannot drop {n} dice from {len(kept)}, all dice dropped"
                )
                return []
            ranked = sorted(kept, key=lambda i: (pool[i], i))
            return sorted(ranked[n:])

        if n >= len(kept):
            return kept
        if isinstance(modifier, KeepHigh):
            ranked = sorted(kept, key=lambda i: (-pool[i], i))
            return sorted(ranked[:n])

        ranked = sorted(kept, key=lambda i: (pool[i], i))
        if isinstance(modifier, KeepMiddle):
            # 低端捨棄一半（無條件捨去），其餘從高端捨棄
            low = (len(kept) - n) // 2
            return sorted(ranked[low:low + n])
        return sorted(ranked[:n])


def _sort_rolls(rolls: List[int], unsorted: bool) -> Tuple[int, ...]:
    if unsorted:
        return tuple(rolls)
    return tuple(sorted(rolls, reverse=True))


def _result(spec: RollSpecification, individual, kept, **fields) -> RollResult:
    """組出結果，帶上擲骰指令的顯示欄位"""
    return RollResult(
        individual_rolls=tuple(individual),
        kept_rolls=tuple(kept),
        comment=spec.comment,
        label=spec.label,
        private=spec.private,
        simple=spec.simple,
        no_results=spec.no_results,
        unsorted=spec.unsorted,
        original_expression=spec.original_expression,
        **fields
    )


def _roll_nested(modifier, spec: RollSpecification, rng, limits: DiceLimits, depth: int):
    """擲額外骰組，回傳 (結果, 來源, 顯示骰組)"""
    nested = resolve(replace(modifier.spec, unsorted=spec.unsorted), rng, limits, depth + 1)
    origin = _NESTED_ORIGINS[type(modifier)]
    group = DiceGroup(
        description=modifier.spec.description,
        rolls=nested.kept_rolls,
        dropped=nested.dropped_rolls,
        origin=origin
    )
    return nested, origin, group


def resolve(spec: RollSpecification, rng=None, limits: Optional[DiceLimits] = None,
            _depth: int = 0) -> RollResult:
    """
    執行一個擲骰指令

    rng 需提供 randint(a, b)，預設使用 random 模組
    """
    if rng is None:
        rng = random
    limits = limits or DEFAULT_LIMITS
    if _depth > limits.max_nesting_depth:
        raise ResolutionError("Too many nested dice groups")
    if spec.count < 1:
        raise ResolutionError("Cannot roll zero dice")
    if spec.sides < 1:
        raise ResolutionError("Cannot roll zero-sided dice")

    modifiers = spec.modifiers
    for modifier in modifiers:
        if isinstance(modifier, POOL_SYSTEM_MODIFIERS):
            return _POOL_SYSTEMS[type(modifier)](spec, modifier, rng, limits, _depth)

    state = _RollState(spec, rng)

    # 1. 初始擲骰
    state.pool = [state.roll() for _ in range(spec.count)]

    # 2. 爆骰 / 重擲
    for modifier in modifiers:
        if isinstance(modifier, Explode):
            state.explode(modifier.threshold, indefinite=False)
        elif isinstance(modifier, ExplodeIndefinite):
            state.explode(modifier.threshold, indefinite=True)
        elif isinstance(modifier, Reroll):
            state.reroll(modifier.threshold, indefinite=False)
        elif isinstance(modifier, RerollIndefinite):
            state.reroll(modifier.threshold, indefinite=True)
        elif isinstance(modifier, RerollGreater):
            state.reroll(modifier.threshold, indefinite=False, greater=True)
        elif isinstance(modifier, RerollGreaterIndefinite):
            state.reroll(modifier.threshold, indefinite=True, greater=True)

    pool = state.pool
    notes = state.notes
    individual = list(pool)

    # 3. 保留 / 捨棄
    kept_index = list(range(len(pool)))
    for modifier in modifiers:
        if isinstance(modifier, SELECTION_MODIFIERS):
            kept_index = state.select(kept_index, modifier)
    kept_set = set(kept_index)
    base_kept = [pool[i] for i in kept_index]
    base_dropped = [pool[i] for i in range(len(pool)) if i not in kept_set]

    # 4. 加總
    fudge = any(isinstance(m, Fudge) for m in modifiers)
    if fudge:
        if spec.sides != 3:
            raise ResolutionError("Fudge dice must be rolled as d3")
        total = sum(FUDGE_VALUES[v] for v in base_kept)
        notes.append("Fudge dice: 1=(-), 2=( ), 3=(+)")
    else:
        total = sum(base_kept)

    kept = list(base_kept)
    dropped = list(base_dropped)
    groups: List[DiceGroup] = []

    for modifier in modifiers:
        if isinstance(modifier, (CyberpunkRed, Witcher)) and base_kept:
            extras = _critical_d10(state, base_kept[0], indefinite=isinstance(modifier, Witcher))
            if extras:
                origin = "add" if extras[0] > 0 else "subtract"
                rolls = tuple(abs(v) for v in extras)
                individual.extend(rolls)
                kept.extend(rolls)
                groups.append(DiceGroup(f"{len(rolls)}d10", rolls, origin=origin))
                total += sum(extras)

    # 5. 算術、成功計數、額外骰組
    successes: Optional[int] = None
    failures: Optional[int] = None
    botches: Optional[int] = None
    system = None

    # 最後一個計數修正之前的算術逐骰套用，之後的算術套用到成功數
    counting_at = [i for i, m in enumerate(modifiers) if isinstance(m, COUNTING_MODIFIERS)]
    last_count = counting_at[-1] if counting_at else -1
    counted = list(individual)
    adjusted = False

    for index, modifier in enumerate(modifiers):
        if isinstance(modifier, ARITHMETIC_MODIFIERS):
            if index < last_count:
                counted = [apply_arithmetic(v, modifier) for v in counted]
                adjusted = True
            elif counting_at:
                successes = apply_arithmetic(successes, modifier)
            else:
                total = apply_arithmetic(total, modifier)
        elif isinstance(modifier, COUNTING_MODIFIERS):
            if adjusted:
                notes.append(f"Dice modified before counting: [{', '.join(str(v) for v in counted)}]")
                adjusted = False
            if isinstance(modifier, Target):
                successes = (successes or 0) + sum(1 for v in counted if v >= modifier.value)
            elif isinstance(modifier, TargetLower):
                successes = (successes or 0) + sum(1 for v in counted if v <= modifier.value)
            elif isinstance(modifier, Failure):
                count = sum(1 for v in counted if v <= modifier.value)
                failures = (failures or 0) + count
                successes = (successes or 0) - count
            else:
                threshold = modifier.threshold if modifier.threshold is not None else 1
                botches = sum(1 for v in counted if v <= threshold)
                if successes is None:
                    successes = 0
                if botches:
                    notes.append(f"{_plural(botches, 'die', 'dice')} botched (≤{threshold})")
        elif isinstance(modifier, Cancel):
            successes, failures = _cancel(spec.sides, individual, successes, failures, notes)
        elif isinstance(modifier, WrathGlory):
            system, successes = _wrath_glory(modifier, individual, successes, notes)
        elif isinstance(modifier, NESTED_DICE_MODIFIERS):
            nested, origin, group = _roll_nested(modifier, spec, rng, limits, _depth)
            individual.extend(nested.individual_rolls)
            counted.extend(nested.individual_rolls)
            kept.extend(nested.kept_rolls)
            dropped.extend(nested.dropped_rolls)
            notes.extend(nested.notes)
            groups.append(group)
            total = _combine(total, nested.total, origin)

    # 傷害系統在所有算術之後
    for modifier in modifiers:
        if isinstance(modifier, Godbound):
            system, total = _godbound(modifier, spec, total, base_kept, notes)
        elif isinstance(modifier, HeroSystem):
            system, total = _hero_system(modifier, state, total, base_kept, notes)
        elif isinstance(modifier, CypherSystem):
            system = _cypher_system(modifier, pool[0], notes)
        elif isinstance(modifier, Shadowrun):
            _shadowrun_glitch(spec.count, pool, successes, notes)

    # 6. 收尾
    if any(isinstance(m, SUCCESS_MODIFIERS) for m in modifiers):
        total = 0

    base_group = DiceGroup(
        description=spec.description,
        rolls=_sort_rolls(base_kept, spec.unsorted),
        dropped=tuple(base_dropped),
        origin="base"
    )
    if fudge:
        system = FudgeOutcome(symbols=tuple(FUDGE_SYMBOLS[v] for v in base_group.rolls))

    return _result(
        spec, individual, _sort_rolls(kept, spec.unsorted),
        dropped_rolls=tuple(dropped),
        dice_groups=(base_group,) + tuple(groups),
        total=total,
        successes=successes,
        failures=failures,
        botches=botches,
        notes=tuple(notes),
        system=system
    )


def _critical_d10(state: _RollState, first: int, indefinite: bool) -> List[int]:
    """
    Cyberpunk Red / Witcher：擲出 10 再擲一顆 d10 加上，擲出 1 再擲一顆扣掉

    Witcher 在追加骰又擲出相同點數時繼續追加。回傳帶正負號的追加骰
    """
    if first not in (1, 10):
        return []

    sign = 1 if first == 10 else -1
    extras: List[int] = []
    while True:
        if len(extras) == MAX_EXPLOSIONS:
            state.notes.append(f"Maximum explosions reached ({MAX_EXPLOSIONS})")
            break
        value = state.roll(10)
        extras.append(sign * value)

        if len(extras) > 1:
            if sign > 0:
                state.notes.append(f"🔥 **EXPLOSION CONTINUES!** Added {value}")
            else:
                state.notes.append(f"💥 **FAILURE CONTINUES!** Subtracted {value}")
        elif sign > 0:
            icon = "⚔️" if indefinite else "💥"
            state.notes.append(f"{icon} **CRITICAL SUCCESS!** Rolled 10, added {value}")
        else:
            state.notes.append(f"💀 **CRITICAL FAILURE!** Rolled 1, subtracted {value}")

        if not indefinite or value != first:
            break
    return extras


def _cancel(sides: int, rolls: List[int], successes: Optional[int], failures: Optional[int],
            notes: List[str]):
    """最大面抵銷 1：被抵銷的 1 不再扣成功數"""
    if failures is None:
        notes.append("Cancel modifier requires failure counting (f#) to work")
        return successes, failures

    highs = sum(1 for v in rolls if v == sides)
    ones = sum(1 for v in rolls if v == 1)
    cancelled = min(highs, ones, failures)
    if cancelled:
        notes.append(
            f"**CANCELLED**: {cancelled} failures (1s) cancelled by {cancelled} successes ({sides}s)"
        )
    return (successes or 0) + cancelled, failures - cancelled


def _wrath_glory(modifier: WrathGlory, rolls: List[int], successes: Optional[int], notes: List[str]):
    """Wrath & Glory：前 N 顆為憤怒骰"""
    wrath = rolls[:max(1, min(modifier.wrath_dice, len(rolls)))]
    wrath_dice = tuple(wrath) if modifier.wrath_dice > 1 else ()
    difficulty = modifier.difficulty

    complications = sum(1 for v in wrath if v == 1)
    glory = sum(1 for v in wrath if v == 6)

    if modifier.use_total:
        value = sum(rolls)
        passed = None
        if difficulty is not None:
            passed = value >= difficulty
            status = "PASS" if passed else "FAIL"
            notes.append(f"Difficulty {difficulty}: {status} (needed {difficulty}, rolled {value})")
        _wrath_notes(complications, 0, notes)
        outcome = WrathGloryOutcome(
            wrath_die=wrath[0], difficulty=difficulty, passed=passed, total=value,
            wrath_dice=wrath_dice
        )
        return outcome, successes

    icons = sum(1 for v in rolls if 4 <= v <= 5)
    exalted = sum(1 for v in rolls if v == 6)
    successes = (successes or 0) + icons + exalted * 2
    _wrath_notes(complications, glory, notes)

    passed = None
    if difficulty is not None:
        passed = successes >= difficulty
        status = "PASS" if passed else "FAIL"
        notes.append(f"Difficulty {difficulty}: {status} (needed {difficulty})")

    outcome = WrathGloryOutcome(
        wrath_die=wrath[0], icons=icons, exalted_icons=exalted,
        difficulty=difficulty, passed=passed, wrath_dice=wrath_dice
    )
    return outcome, successes


def _wrath_notes(complications: int, glory: int, notes: List[str]):
    if complications == 1:
        notes.append("Wrath die rolled 1 - Complication!")
    elif complications:
        notes.append(f"{complications} Wrath dice rolled 1 - Complications!")
    if glory == 1:
        notes.append("Wrath die rolled 6 - Critical/Glory!")
    elif glory:
        notes.append(f"{glory} Wrath dice rolled 6 - Glory potential!")


def _godbound(modifier: Godbound, spec: RollSpecification, total: int, kept: List[int], notes: List[str]):
    """Godbound 傷害表換算"""
    if modifier.use_straight_damage:
        notes.append("Straight damage (bypasses chart)")
        return GodboundOutcome(damage=total, straight=True), total

    has_math = any(isinstance(m, ARITHMETIC_MODIFIERS + NESTED_DICE_MODIFIERS) for m in spec.modifiers)
    if has_math:
        damage = godbound_chart(total)
        notes.append(f"Damage chart: {total} → {damage}")
    else:
        conversions = [(v, godbound_chart(v)) for v in kept]
        damage = sum(converted for _, converted in conversions)
        listing = ", ".join(f"{v} → {converted}" for v, converted in conversions)
        notes.append(f"Damage chart conversions: [{listing}]")
    notes.append("Using Godbound damage chart (1-=0, 2-5=1, 6-9=2, 10+=4)")
    return GodboundOutcome(damage=damage), damage


def _hero_system(modifier: HeroSystem, state: _RollState, total: int, kept: List[int], notes: List[str]):
    """Hero System 傷害"""
    if modifier.kind == HeroSystemType.NORMAL:
        body = sum(hero_body(v) for v in kept)
        notes.append(f"Normal damage: {total} STUN, {body} BODY")
        return HeroSystemOutcome(kind=modifier.kind, body=body, stun=total), total

    if modifier.kind == HeroSystemType.KILLING:
        multiplier = state.rng.randint(1, 3)
        stun = total * multiplier
        notes.append(f"Killing damage: {total} BODY, {stun} STUN (×{multiplier})")
        outcome = HeroSystemOutcome(kind=modifier.kind, body=total, stun=stun, multiplier=multiplier)
        return outcome, stun

    notes.append("Hero System to-hit roll (3d6 roll-under)")
    notes.append("Target: 11 + OCV - DCV or less")
    return HeroSystemOutcome(kind=modifier.kind), total


def _cypher_system(modifier: CypherSystem, roll: int, notes: List[str]) -> CypherOutcome:
    """Cypher System：難度等級 × 3 為目標值，以 d20 原始點數判定"""
    target = modifier.level * 3
    passed = roll >= target
    status = "SUCCESS" if passed else "FAILURE"
    notes.append(f"**{status}** (rolled {roll} vs target {target})")
    if roll == 1:
        notes.append("**GM INTRUSION** (Natural 1)")
    elif 17 <= roll <= 19:
        notes.append("**MINOR EFFECT** (17-19)")
    elif roll == 20:
        notes.append("**MAJOR EFFECT** (Natural 20)")
    notes.append(f"Cypher System - Level {modifier.level} Task")
    return CypherOutcome(level=modifier.level, target=target, passed=passed)


def _shadowrun_glitch(pool_size: int, rolls: List[int], successes: Optional[int], notes: List[str]):
    """Shadowrun：原始骰池超過一半擲出 1 即為失誤"""
    ones = sum(1 for v in rolls[:pool_size] if v == 1)
    if ones <= pool_size // 2:
        return
    if not successes:
        notes.append(
            "💀 **CRITICAL GLITCH!** More than half the dice pool rolled 1s "
            "with no successes - catastrophic failure!"
        )
    else:
        notes.append(
            "⚠️ **GLITCH!** More than half the dice pool rolled 1s "
            "but successes were achieved - complications arise!"
        )


# 自帶擲骰規則的系統

def _trailing_math(spec: RollSpecification, total: int, rng, limits: DiceLimits, depth: int,
                   individual: List[int], kept: List[int], groups: List[DiceGroup], notes: List[str]) -> int:
    """系統結果算出之後，依序套用算術與額外骰組"""
    for modifier in spec.modifiers:
        if isinstance(modifier, ARITHMETIC_MODIFIERS):
            total = apply_arithmetic(total, modifier)
        elif isinstance(modifier, NESTED_DICE_MODIFIERS):
            nested, origin, group = _roll_nested(modifier, spec, rng, limits, depth)
            individual.extend(nested.individual_rolls)
            kept.extend(nested.kept_rolls)
            notes.extend(nested.notes)
            groups.append(group)
            total = _combine(total, nested.total, origin)
    return total


def _savage_worlds(spec: RollSpecification, modifier: SavageWorlds, rng, limits: DiceLimits, depth: int) -> RollResult:
    """屬性骰與野骰（d6）都會爆骰，取總和較高者，平手取屬性骰"""
    state = _RollState(spec, rng)
    sides = spec.sides
    trait = state.exploding_chain(sides)
    wild = state.exploding_chain(6)
    trait_total = sum(trait)
    wild_total = sum(wild)
    trait_kept = trait_total >= wild_total
    snake_eyes = trait[0] == 1 and wild[0] == 1

    notes = state.notes
    if snake_eyes:
        notes.append("🐍 **SNAKE EYES!** Critical Failure - both dice rolled 1")
    if trait_total > wild_total:
        notes.append(f"Trait die (d{sides}) kept: {trait_total} beats Wild die (d6): {wild_total}")
    elif wild_total > trait_total:
        notes.append(f"Wild die (d6) kept: {wild_total} beats Trait die (d{sides}): {trait_total}")
    else:
        notes.append(f"Tie: both Trait die (d{sides}) and Wild die (d6) rolled {trait_total}")
    if len(trait) > 1:
        notes.append(f"Trait die exploded {len(trait) - 1} times")
    if len(wild) > 1:
        notes.append(f"Wild die exploded {len(wild) - 1} times")
    notes.append("Savage Worlds: Trait die + Wild die, keep highest")

    individual = trait + wild
    kept = list(trait if trait_kept else wild)
    groups = [
        DiceGroup(f"1d{sides}", tuple(trait), origin="trait"),
        DiceGroup("1d6", tuple(wild), origin="wild"),
    ]
    total = _trailing_math(spec, max(trait_total, wild_total), rng, limits, depth,
                           individual, kept, groups, notes)

    return _result(
        spec, individual, kept,
        dice_groups=tuple(groups),
        total=total,
        notes=tuple(notes),
        system=SavageWorldsOutcome(trait_total, wild_total, trait_kept, snake_eyes)
    )


def _marvel_rerolls(state: _RollState, final: List[int], count: int, edge: bool) -> List[str]:
    """優勢重擲最低骰取高者，劣勢重擲最高骰取低者，回傳每次的說明"""
    details = []
    for _ in range(count):
        old = min(final) if edge else max(final)
        index = final.index(old)
        new = state.roll(6)
        if (new > old) if edge else (new < old):
            final[index] = new
            details.append(f"{old} → {new}")
        else:
            details.append(f"{old} → {new} (kept {old})")
    return details


def _marvel_multiverse(spec: RollSpecification, modifier: MarvelMultiverse, rng, limits: DiceLimits,
                       depth: int) -> RollResult:
    """3d6，中間那顆是 Marvel 骰，擲出 1（Marvel 標誌）算 6"""
    state = _RollState(spec, rng)
    initial = [state.roll(6) for _ in range(3)]
    notes = state.notes
    fantastic = initial[1] == 1
    final = list(initial)
    if fantastic:
        final[1] = 6
        notes.append("Fantastic! Marvel die rolled Marvel symbol, counts as 6")

    if modifier.edges:
        notes.append(_plural(modifier.edges, "edge", "edges"))
    if modifier.troubles:
        notes.append(_plural(modifier.troubles, "trouble", "troubles"))

    for count, edge, name in ((modifier.edges, True, "Edge"), (modifier.troubles, False, "Trouble")):
        if not count:
            continue
        details = _marvel_rerolls(state, final, count, edge)
        if len(details) == 1:
            notes.append(f"{name} 1: Rerolled {details[0]}")
        else:
            listing = ", ".join(f"#{i}: {detail}" for i, detail in enumerate(details, 1))
            notes.append(f"{name} rerolls: {listing}")

    # Marvel 骰被重擲換掉之後不再顯示標誌
    fantastic_kept = fantastic and final[1] == 6
    groups = [DiceGroup("3d6", tuple(initial), origin="base")]
    if modifier.edges or modifier.troubles:
        groups.append(DiceGroup("3d6", tuple(final), origin="result"))

    individual = list(initial)
    kept = list(final)
    total = _trailing_math(spec, sum(final), rng, limits, depth, individual, kept, groups, notes)

    return _result(
        spec, individual, kept,
        dice_groups=tuple(groups),
        total=total,
        notes=tuple(notes),
        system=MarvelOutcome(marvel_die=initial[1], fantastic=fantastic_kept)
    )


def _silhouette(spec: RollSpecification, modifier: Silhouette, rng, limits: DiceLimits, depth: int) -> RollResult:
    """取最高的 d6，每多一顆 6 再加 1"""
    state = _RollState(spec, rng)
    rolls = [state.roll(6) for _ in range(spec.count)]
    notes = state.notes
    extra = max(0, rolls.count(6) - 1)
    if extra:
        notes.append(f"{_plural(extra, 'extra 6', 'extra 6s')} (+{extra})")

    individual = list(rolls)
    kept = list(_sort_rolls(rolls, spec.unsorted))
    groups = [DiceGroup(spec.description, tuple(kept), origin="base")]
    total = _trailing_math(spec, max(rolls) + extra, rng, limits, depth, individual, kept, groups, notes)

    return _result(spec, individual, kept, dice_groups=tuple(groups), total=total, notes=tuple(notes))


def _brave_new_world(spec: RollSpecification, modifier: BraveNewWorld, rng, limits: DiceLimits,
                     depth: int) -> RollResult:
    """取最高結果；每顆 6 另外產生一個 6 + d6 的結果"""
    state = _RollState(spec, rng)
    pool = [state.roll(6) for _ in range(spec.count)]
    notes = state.notes

    results = list(pool)
    explosions = []
    for value in pool:
        if value == 6:
            if len(explosions) == MAX_EXPLOSIONS:
                notes.append(f"Maximum explosions reached ({MAX_EXPLOSIONS})")
                break
            extra = state.roll(6)
            explosions.append(extra)
            results.append(value + extra)

    # 骰池 4 顆以上且過半為 1 時自動失敗
    disaster = spec.count >= 4 and pool.count(1) > spec.count // 2
    highest = 0 if disaster else max(results)
    if disaster:
        notes.append("Disaster! Majority of dice rolled 1s - automatic failure")
    if explosions:
        notes.append(f"{_plural(len(explosions), 'die', 'dice')} exploded on 6s")
    notes.append(f"Brave New World: {spec.count}-die pool, highest result: {highest}")

    individual = pool + explosions
    kept = list(_sort_rolls(results, spec.unsorted))
    groups = [DiceGroup(spec.description, tuple(kept), origin="base")]
    total = _trailing_math(spec, highest, rng, limits, depth, individual, kept, groups, notes)

    return _result(spec, individual, kept, dice_groups=tuple(groups), total=total, notes=tuple(notes))


def _conan_skill(spec: RollSpecification, modifier: ConanSkill, rng, limits: DiceLimits, depth: int) -> RollResult:
    """
    Conan 2d20：每顆 d20 算一個成功

    加上的 d6 以戰鬥骰解讀，傷害併入成功數
    """
    state = _RollState(spec, rng)
    rolls = [state.roll(20) for _ in range(spec.count)]
    notes = state.notes
    individual = list(rolls)
    kept = list(_sort_rolls(rolls, spec.unsorted))
    groups = [DiceGroup(spec.description, tuple(kept), origin="base")]

    successes = len(rolls)
    total = successes
    combat = False
    specials = 0
    for mod in spec.modifiers:
        if isinstance(mod, AddDice) and mod.spec.sides == 6:
            nested, origin, group = _roll_nested(mod, spec, rng, limits, depth)
            damage = sum(conan_damage(v) for v in nested.kept_rolls)
            specials += sum(1 for v in nested.kept_rolls if v >= 5)
            successes += damage
            total += damage
            combat = True
            individual.extend(nested.individual_rolls)
            kept.extend(nested.kept_rolls)
            groups.append(group)
        elif isinstance(mod, ARITHMETIC_MODIFIERS):
            total = apply_arithmetic(total, mod)
        elif isinstance(mod, NESTED_DICE_MODIFIERS):
            nested, origin, group = _roll_nested(mod, spec, rng, limits, depth)
            individual.extend(nested.individual_rolls)
            kept.extend(nested.kept_rolls)
            groups.append(group)
            total = _combine(total, nested.total, origin)

    if combat:
        if specials:
            notes.append(_plural(specials, "special effect", "special effects"))
        notes.append("1=1, 2=2, 3-4=0, 5-6=1+special")

    return _result(
        spec, individual, kept,
        dice_groups=tuple(groups),
        total=total,
        successes=successes,
        notes=tuple(notes)
    )


_POOL_SYSTEMS = {
    SavageWorlds: _savage_worlds,
    MarvelMultiverse: _marvel_multiverse,
    Silhouette: _silhouette,
    BraveNewWorld: _brave_new_world,
    ConanSkill: _conan_skill,
}
