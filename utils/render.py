"""
擲骰結果格式化（Discord Markdown）
"""

from typing import List

from models.types import (
    CypherOutcome, FudgeOutcome, GodboundOutcome, HeroSystemOutcome,
    HeroSystemType, MarvelOutcome, RollResult, SavageWorldsOutcome,
    WrathGloryOutcome,
)

EMPTY_MESSAGE = "No dice to roll!"

_SEPARATORS = {
    "subtract": " - ",
    "multiply": " * ",
    "divide": " / ",
    "result": " → ",
}


def _tally(rolls) -> str:
    return f"`[{', '.join(str(v) for v in rolls)}]`"


def _marvel_tally(rolls, marvel_symbol: bool) -> str:
    """中間的 Marvel 骰擲出標誌時顯示 M"""
    shown = [str(v) for v in rolls]
    if marvel_symbol:
        shown[1] = "M"
    return f"`[{', '.join(shown)}]`"


def format_dice(result: RollResult) -> str:
    """格式化保留的骰子，有額外骰組時分組顯示"""
    system = result.system
    if isinstance(system, FudgeOutcome):
        return f"`[{', '.join(system.symbols)}]`"

    if isinstance(system, SavageWorldsOutcome):
        trait, wild = result.dice_groups[:2]
        text = f"Trait {_tally(trait.rolls)} Wild {_tally(wild.rolls)}"
        for group in result.dice_groups[2:]:
            text += _SEPARATORS.get(group.origin, " + ") + _tally(group.rolls)
        return text

    if len(result.dice_groups) > 1 or isinstance(system, MarvelOutcome):
        parts = []
        for i, group in enumerate(result.dice_groups):
            if i > 0:
                parts.append(_SEPARATORS.get(group.origin, " + "))
            if isinstance(system, MarvelOutcome) and group.origin == "base":
                parts.append(_marvel_tally(group.rolls, system.marvel_die == 1))
            elif isinstance(system, MarvelOutcome) and group.origin == "result":
                parts.append(_marvel_tally(group.rolls, system.fantastic))
            else:
                parts.append(_tally(group.rolls))
        return "".join(parts)

    return _tally(result.kept_rolls)


def result_value(result: RollResult) -> int:
    """結果的代表數值，用於擲骰組加總"""
    system = result.system
    if isinstance(system, GodboundOutcome):
        return system.damage
    if isinstance(system, WrathGloryOutcome) and system.total is not None:
        return system.total
    if result.successes is not None:
        return result.successes
    return result.total


def format_value(result: RollResult) -> str:
    """格式化總和或成功數"""
    system = result.system

    if isinstance(system, WrathGloryOutcome):
        wrath = system.wrath_die
        if system.wrath_dice:
            wrath = f"[{', '.join(str(v) for v in system.wrath_dice)}]"
        if system.total is not None:
            return f"**{system.total}** total | Wrath: `{wrath}`"
        return (
            f"**{result.successes}** successes | Wrath: `{wrath}` | "
            f"Icons: `{system.icons}` Exalted Icons: `{system.exalted_icons}`"
        )

    if isinstance(system, CypherOutcome):
        status = "success" if system.passed else "failure"
        return f"**{result.total}** ({status} vs {system.target})"

    if isinstance(system, GodboundOutcome):
        return f"**{system.damage}** damage"

    if isinstance(system, HeroSystemOutcome):
        if system.kind == HeroSystemType.KILLING:
            return f"**{system.body}** BODY, **{system.stun}** STUN"
        if system.kind == HeroSystemType.NORMAL:
            return f"**{system.stun}** STUN, **{system.body}** BODY"

    if result.successes is not None:
        text = f"**{result.successes}** successes"
        if result.failures:
            text += f" ({result.failures} failures)"
        if result.botches:
            text += f" ({result.botches} botches)"
        return text

    return f"**{result.total}**"


def render(result: RollResult, show_comment: bool = True) -> str:
    """格式化單一擲骰結果"""
    text = f"**{result.label}**: " if result.label else ""

    if result.simple and not result.no_results:
        text += format_value(result)
    else:
        text += f"Roll: {format_dice(result)}"
        if result.dropped_rolls:
            text += f" ~~[{', '.join(str(v) for v in result.dropped_rolls)}]~~"
        if not result.no_results:
            text += f" = {format_value(result)}"

    if show_comment and result.comment:
        text += f" Reason: `{result.comment}`"

    if not result.simple:
        for note in result.notes:
            text += f"\n*Note: {note}*"

    return text


def _request_text(expression: str) -> str:
    """去掉備註的請求文字"""
    return expression.split("!", 1)[0].strip()


def render_many(results: List[RollResult]) -> str:
    """
    格式化多個結果：分號擲骰逐行附上請求，擲骰組附加總和，其他直接換行
    """
    if not results:
        return EMPTY_MESSAGE
    if len(results) == 1:
        return render(results[0])

    if any(r.original_expression for r in results):
        lines = []
        for result in results:
            request = _request_text(result.original_expression or "")
            lines.append(f"Request: `{request}` {render(result)}")
        return "\n".join(lines)

    if all(r.label and r.label.startswith("Set ") for r in results):
        text = "\n".join(render(r, show_comment=False) for r in results)
        text += f"\n**Total: {sum(result_value(r) for r in results)}**"
        comment = results[0].comment
        if comment:
            text += f" Reason: `{comment}`"
        return text

    return "\n".join(render(r) for r in results)
