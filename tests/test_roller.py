"""Unit tests for the resolution engine."""

import dataclasses
import random

import pytest

from models.types import (
    Add, AddDice, Botch, BraveNewWorld, Cancel, ConanSkill, CyberpunkRed,
    CypherOutcome, CypherSystem, DarkHeresy, Divide, DivideDice, DivideNumber,
    Drop, Explode, ExplodeIndefinite, Failure, Fudge, FudgeOutcome, Godbound,
    GodboundOutcome, HeroSystem, HeroSystemOutcome, HeroSystemType, KeepHigh,
    KeepLow, KeepMiddle, MarvelMultiverse, MarvelOutcome, Multiply,
    MultiplyDice, Reroll, RerollGreater, RerollGreaterIndefinite,
    RerollIndefinite, RollSpecification, SavageWorlds, SavageWorldsOutcome,
    Shadowrun, Silhouette, Subtract, SubtractDice, Target, TargetLower,
    Witcher, WrathGlory, WrathGloryOutcome,
)
from utils.config import DiceLimits
from utils.errors import ResolutionError
from utils.roller import conan_damage, godbound_chart, resolve, truncating_divide


def spec(count: int, sides: int, *modifiers, **kwargs) -> RollSpecification:
    return RollSpecification(count, sides, tuple(modifiers), **kwargs)


class TestInitialRolls:
    def test_plain_roll(self, scripted) -> None:
        result = resolve(spec(3, 6), scripted([2, 5, 3]))
        assert result.individual_rolls == (2, 5, 3)
        assert result.kept_rolls == (5, 3, 2)
        assert result.dropped_rolls == ()
        assert result.total == 10
        assert result.successes is None

    def test_unsorted_keeps_roll_order(self, scripted) -> None:
        result = resolve(spec(3, 6, unsorted=True), scripted([2, 5, 3]))
        assert result.kept_rolls == (2, 5, 3)

    def test_base_group(self, scripted) -> None:
        result = resolve(spec(2, 8), scripted([1, 7]))
        assert len(result.dice_groups) == 1
        group = result.dice_groups[0]
        assert (group.description, group.rolls, group.origin) == ("2d8", (7, 1), "base")

    @pytest.mark.parametrize("seed", range(20))
    def test_count_dice_within_sides(self, seed: int) -> None:
        result = resolve(spec(7, 12), random.Random(seed))
        assert len(result.individual_rolls) == 7
        assert all(1 <= v <= 12 for v in result.individual_rolls)

    def test_zero_dice(self) -> None:
        with pytest.raises(ResolutionError, match="zero dice"):
            resolve(spec(0, 6))

    def test_zero_sides(self) -> None:
        with pytest.raises(ResolutionError, match="zero-sided"):
            resolve(spec(1, 0))

    def test_default_random_source(self) -> None:
        result = resolve(spec(2, 6))
        assert 2 <= result.total <= 12


class TestNestingLimit:
    def nested_spec(self) -> RollSpecification:
        return spec(1, 6, AddDice(spec(1, 4, AddDice(spec(1, 4)))))

    def test_default_limits_allow_two_levels(self, scripted) -> None:
        assert resolve(self.nested_spec(), scripted([3, 2, 1])).total == 6

    def test_custom_limit_is_honoured(self, scripted) -> None:
        with pytest.raises(ResolutionError, match="Too many nested dice groups"):
            resolve(self.nested_spec(), scripted([3, 2]), DiceLimits(max_nesting_depth=1))


class TestExplode:
    def test_explodes_once_per_original_die(self, scripted) -> None:
        result = resolve(spec(3, 6, Explode()), scripted([6, 2, 6, 6, 1]))
        assert result.individual_rolls == (6, 2, 6, 6, 1)
        assert result.total == 21
        assert result.notes == ("2 dice exploded",)

    def test_custom_threshold(self, scripted) -> None:
        result = resolve(spec(2, 10, Explode(8)), scripted([9, 3, 4]))
        assert result.individual_rolls == (9, 3, 4)
        assert result.notes == ("1 die exploded",)

    def test_indefinite_chains(self, scripted) -> None:
        result = resolve(spec(1, 6, ExplodeIndefinite()), scripted([6, 6, 3]))
        assert result.individual_rolls == (6, 6, 3)
        assert result.total == 15
        assert result.notes == ("2 dice exploded",)

    def test_indefinite_is_capped(self) -> None:
        result = resolve(spec(1, 6, ExplodeIndefinite(1)), random.Random(7))
        assert len(result.individual_rolls) == 101
        assert "Maximum explosions reached (100)" in result.notes

    def test_dark_heresy_note(self, scripted) -> None:
        result = resolve(spec(1, 10, ExplodeIndefinite(10), DarkHeresy()), scripted([10, 4]))
        assert result.notes == ("RIGHTEOUS FURY! 1 die exploded",)


class TestReroll:
    def test_rerolls_once(self, scripted) -> None:
        result = resolve(spec(3, 6, Reroll(1)), scripted([1, 4, 1, 1, 5]))
        assert result.individual_rolls == (1, 4, 5)
        assert result.notes == ("Rerolled 1 → 1", "Rerolled 1 → 5", "2 dice rerolled")

    def test_indefinite_until_above_threshold(self, scripted) -> None:
        result = resolve(spec(2, 6, RerollIndefinite(2)), scripted([1, 4, 2, 3]))
        assert result.individual_rolls == (3, 4)
        assert result.notes == ("Rerolled 1 → 2", "1 die rerolled")

    def test_indefinite_is_capped(self) -> None:
        result = resolve(spec(1, 6, RerollIndefinite(6)), random.Random(3))
        assert len(result.individual_rolls) == 1
        assert "Maximum rerolls reached (100)" in result.notes

    def test_reroll_greater_once(self, scripted) -> None:
        result = resolve(spec(3, 6, RerollGreater(5)), scripted([6, 2, 5, 6, 1]))
        assert result.individual_rolls == (6, 2, 1)
        assert result.notes == ("Rerolled 6 → 6", "Rerolled 5 → 1", "2 dice rerolled")

    def test_reroll_greater_indefinite(self, scripted) -> None:
        result = resolve(spec(2, 6, RerollGreaterIndefinite(5)), scripted([6, 3, 5, 2]))
        assert result.individual_rolls == (2, 3)
        assert result.notes == ("Rerolled 6 → 5", "1 die rerolled")


class TestSelection:
    def test_keep_high(self, scripted) -> None:
        result = resolve(spec(4, 6, KeepHigh(3)), scripted([1, 4, 4, 6]))
        assert result.kept_rolls == (6, 4, 4)
        assert result.dropped_rolls == (1,)
        assert result.total == 14

    def test_keep_low(self, scripted) -> None:
        result = resolve(spec(3, 6, KeepLow(1)), scripted([3, 1, 5]))
        assert result.kept_rolls == (1,)
        assert result.dropped_rolls == (3, 5)

    def test_drop(self, scripted) -> None:
        result = resolve(spec(3, 6, Drop(1)), scripted([3, 1, 5]))
        assert result.kept_rolls == (5, 3)
        assert result.dropped_rolls == (1,)

    def test_drop_more_than_available(self, scripted) -> None:
        result = resolve(spec(2, 6, Drop(3)), scripted([3, 4]))
        assert result.kept_rolls == ()
        assert result.dropped_rolls == (3, 4)
        assert result.total == 0
        assert any("all dice dropped" in note for note in result.notes)

    def test_keep_more_than_available(self, scripted) -> None:
        result = resolve(spec(2, 6, KeepHigh(5)), scripted([3, 4]))
        assert result.kept_rolls == (4, 3)
        assert result.dropped_rolls == ()

    def test_keep_ties(self, scripted) -> None:
        result = resolve(spec(2, 6, KeepHigh(1)), scripted([4, 4]))
        assert result.kept_rolls == (4,)
        assert result.dropped_rolls == (4,)

    def test_keep_middle(self, scripted) -> None:
        result = resolve(spec(5, 10, KeepMiddle(2)), scripted([1, 9, 5, 7, 3]))
        assert result.kept_rolls == (5, 3)
        assert result.dropped_rolls == (1, 9, 7)
        assert result.total == 8

    def test_keep_middle_drops_fewer_low(self, scripted) -> None:
        result = resolve(spec(4, 10, KeepMiddle(3)), scripted([2, 8, 4, 6]))
        assert result.kept_rolls == (6, 4, 2)
        assert result.dropped_rolls == (8,)

    def test_individual_rolls_include_dropped(self, scripted) -> None:
        result = resolve(spec(4, 6, KeepHigh(3)), scripted([1, 4, 4, 6]))
        assert result.individual_rolls == (1, 4, 4, 6)

    @pytest.mark.parametrize("seed", range(25))
    def test_keep_high_beats_keep_low(self, seed: int, scripted) -> None:
        pool = [random.Random(seed).randint(1, 20) for _ in range(5)]
        high = resolve(spec(5, 20, KeepHigh(2)), scripted(pool))
        low = resolve(spec(5, 20, KeepLow(2)), scripted(pool))
        assert high.total >= low.total

    @pytest.mark.parametrize("seed", range(25))
    def test_drop_matches_keep_high(self, seed: int, scripted) -> None:
        rng = random.Random(seed)
        pool = [rng.randint(1, 6) for _ in range(6)]
        dropped = resolve(spec(6, 6, Drop(2)), scripted(pool))
        kept = resolve(spec(6, 6, KeepHigh(4)), scripted(pool))
        assert dropped.kept_rolls == kept.kept_rolls


class TestArithmetic:
    def test_applied_in_order(self, scripted) -> None:
        assert resolve(spec(1, 6, Add(2), Multiply(3)), scripted([4])).total == 18
        assert resolve(spec(1, 6, Multiply(3), Add(2)), scripted([4])).total == 14

    def test_division_truncates_toward_zero(self, scripted) -> None:
        result = resolve(spec(1, 6, Subtract(8), Divide(2)), scripted([1]))
        assert result.total == -3

    def test_divide_by_zero(self, scripted) -> None:
        with pytest.raises(ResolutionError, match="Cannot divide by zero"):
            resolve(spec(1, 6, Divide(0)), scripted([3]))

    @pytest.mark.parametrize("total, divisor, expected", [
        (7, 2, 3), (-7, 2, -3), (7, -2, -3), (-7, -2, 3), (0, 5, 0),
    ])
    def test_truncating_divide(self, total: int, divisor: int, expected: int) -> None:
        assert truncating_divide(total, divisor) == expected


class TestSuccessCounting:
    def test_target(self, scripted) -> None:
        result = resolve(spec(5, 10, Target(8)), scripted([8, 9, 2, 10, 7]))
        assert result.successes == 3
        assert result.total == 0

    def test_target_counts_dropped_dice(self, scripted) -> None:
        result = resolve(spec(3, 10, KeepHigh(1), Target(8)), scripted([9, 8, 2]))
        assert result.kept_rolls == (9,)
        assert result.successes == 2

    def test_failures_cancel_successes(self, scripted) -> None:
        result = resolve(spec(4, 10, Failure(1), Target(8)), scripted([1, 8, 10, 3]))
        assert result.failures == 1
        assert result.successes == 1
        assert result.total == 0

    def test_botch(self, scripted) -> None:
        result = resolve(spec(3, 10, Botch()), scripted([1, 1, 5]))
        assert result.botches == 2
        assert result.successes == 0
        assert result.total == 0
        assert result.notes == ("2 dice botched (≤1)",)

    def test_botch_replaces(self, scripted) -> None:
        result = resolve(spec(3, 10, Botch(), Botch(2)), scripted([1, 2, 5]))
        assert result.botches == 2

    def test_arithmetic_after_target_adds_successes(self, scripted) -> None:
        result = resolve(spec(4, 10, Target(8), Add(2)), scripted([8, 8, 1, 1]))
        assert result.successes == 4
        assert result.total == 0

    def test_arithmetic_before_target_adjusts_each_die(self, scripted) -> None:
        result = resolve(spec(4, 10, Add(1), Target(8)), scripted([7, 8, 1, 2]))
        assert result.successes == 2
        assert result.kept_rolls == (8, 7, 2, 1)
        assert result.notes == ("Dice modified before counting: [8, 9, 2, 3]",)

    def test_arithmetic_after_failures(self, scripted) -> None:
        spec_ = spec(4, 10, Failure(1), Target(8), Subtract(1))
        result = resolve(spec_, scripted([1, 9, 9, 5]))
        assert result.failures == 1
        assert result.successes == 0

    def test_target_lower(self, scripted) -> None:
        result = resolve(spec(4, 20, TargetLower(5)), scripted([3, 5, 6, 20]))
        assert result.successes == 2
        assert result.total == 0


class TestCancel:
    def test_tens_cancel_ones(self, scripted) -> None:
        result = resolve(spec(5, 10, Failure(1), Target(8), Cancel()), scripted([10, 1, 1, 8, 3]))
        assert result.failures == 1
        assert result.successes == 1
        assert result.notes == (
            "**CANCELLED**: 1 failures (1s) cancelled by 1 successes (10s)",
        )

    def test_requires_failure_counting(self, scripted) -> None:
        result = resolve(spec(3, 10, Target(8), Cancel()), scripted([10, 1, 9]))
        assert result.successes == 2
        assert result.notes == ("Cancel modifier requires failure counting (f#) to work",)


class TestWrathGlory:
    def test_icons_and_glory(self, scripted) -> None:
        result = resolve(spec(4, 6, WrathGlory()), scripted([6, 4, 2, 5]))
        assert result.successes == 4
        assert result.total == 0
        assert result.system == WrathGloryOutcome(wrath_die=6, icons=2, exalted_icons=1)
        assert result.notes == ("Wrath die rolled 6 - Critical/Glory!",)

    def test_complication_and_difficulty(self, scripted) -> None:
        result = resolve(spec(3, 6, WrathGlory(3)), scripted([1, 6, 2]))
        assert result.successes == 2
        assert result.notes == (
            "Wrath die rolled 1 - Complication!",
            "Difficulty 3: FAIL (needed 3)",
        )
        assert result.system.passed is False

    def test_total_mode(self, scripted) -> None:
        result = resolve(spec(3, 6, WrathGlory(10, use_total=True)), scripted([6, 5, 1]))
        assert result.system.total == 12
        assert result.system.passed is True
        assert result.successes is None
        assert result.total == 0
        assert result.notes == ("Difficulty 10: PASS (needed 10, rolled 12)",)

    def test_total_mode_keeps_complication(self, scripted) -> None:
        result = resolve(spec(2, 6, WrathGlory(use_total=True)), scripted([1, 5]))
        assert result.notes == ("Wrath die rolled 1 - Complication!",)

    def test_only_sixes_are_exalted(self, scripted) -> None:
        result = resolve(spec(2, 8, WrathGlory()), scripted([7, 8]))
        assert result.successes == 0
        assert result.system.icons == 0
        assert result.system.exalted_icons == 0
        assert result.notes == ()

    def test_two_wrath_dice(self, scripted) -> None:
        result = resolve(spec(4, 6, WrathGlory(wrath_dice=2)), scripted([1, 6, 5, 3]))
        assert result.successes == 3
        assert result.system.wrath_die == 1
        assert result.system.wrath_dice == (1, 6)
        assert result.notes == (
            "Wrath die rolled 1 - Complication!",
            "Wrath die rolled 6 - Critical/Glory!",
        )

    def test_several_wrath_sixes(self, scripted) -> None:
        result = resolve(spec(5, 6, WrathGlory(wrath_dice=3)), scripted([6, 6, 1, 2, 2]))
        assert result.successes == 4
        assert result.notes == (
            "Wrath die rolled 1 - Complication!",
            "2 Wrath dice rolled 6 - Glory potential!",
        )


class TestAdditionalDice:
    def test_add_dice(self, scripted) -> None:
        result = resolve(spec(1, 20, AddDice(spec(1, 4))), scripted([15, 3]))
        assert result.total == 18
        assert result.individual_rolls == (15, 3)
        assert [g.origin for g in result.dice_groups] == ["base", "add"]
        assert [g.rolls for g in result.dice_groups] == [(15,), (3,)]

    def test_subtract_dice(self, scripted) -> None:
        result = resolve(spec(2, 6, SubtractDice(spec(1, 4))), scripted([4, 5, 2]))
        assert result.total == 7
        assert result.dice_groups[1].origin == "subtract"

    def test_nested_modifiers(self, scripted) -> None:
        nested = spec(1, 6, ExplodeIndefinite())
        result = resolve(spec(1, 8, ExplodeIndefinite(), AddDice(nested)), scripted([8, 3, 6, 2]))
        assert result.total == 19
        assert result.individual_rolls == (8, 3, 6, 2)
        assert result.notes == ("1 die exploded", "1 die exploded")

    def test_added_dice_count_toward_targets(self, scripted) -> None:
        result = resolve(spec(1, 10, AddDice(spec(1, 10)), Target(8)), scripted([9, 8]))
        assert result.successes == 2

    def test_multiply_by_dice(self, scripted) -> None:
        result = resolve(spec(1, 6, MultiplyDice(spec(1, 4))), scripted([5, 3]))
        assert result.total == 15
        assert [g.origin for g in result.dice_groups] == ["base", "multiply"]

    def test_divide_by_dice(self, scripted) -> None:
        result = resolve(spec(2, 10, DivideDice(spec(1, 4))), scripted([9, 8, 3]))
        assert result.total == 5


class TestLeadingNumber:
    def test_number_divided_by_dice(self, scripted) -> None:
        assert resolve(spec(2, 4, DivideNumber(200)), scripted([3, 2])).total == 40

    def test_number_minus_dice(self, scripted) -> None:
        assert resolve(spec(1, 6, Multiply(-1), Add(10)), scripted([4])).total == 6

    def test_divide_by_zero_total(self, scripted) -> None:
        with pytest.raises(ResolutionError, match="dice result was 0"):
            resolve(spec(2, 3, Fudge(), DivideNumber(10)), scripted([1, 3]))


class TestCriticalD10:
    def test_cyberpunk_critical_success(self, scripted) -> None:
        result = resolve(spec(1, 10, CyberpunkRed()), scripted([10, 7]))
        assert result.total == 17
        assert result.notes == ("💥 **CRITICAL SUCCESS!** Rolled 10, added 7",)
        assert [g.origin for g in result.dice_groups] == ["base", "add"]

    def test_cyberpunk_critical_failure_before_arithmetic(self, scripted) -> None:
        result = resolve(spec(1, 10, CyberpunkRed(), Add(2)), scripted([1, 4]))
        assert result.total == -1
        assert result.notes == ("💀 **CRITICAL FAILURE!** Rolled 1, subtracted 4",)
        assert result.dice_groups[1].origin == "subtract"

    def test_cyberpunk_plain_roll(self, scripted) -> None:
        result = resolve(spec(1, 10, CyberpunkRed()), scripted([5]))
        assert result.total == 5
        assert result.notes == ()

    def test_witcher_keeps_exploding(self, scripted) -> None:
        result = resolve(spec(1, 10, Witcher()), scripted([10, 10, 3]))
        assert result.total == 23
        assert result.kept_rolls == (10, 10, 3)
        assert result.notes == (
            "⚔️ **CRITICAL SUCCESS!** Rolled 10, added 10",
            "🔥 **EXPLOSION CONTINUES!** Added 3",
        )

    def test_witcher_failure_chain(self, scripted) -> None:
        result = resolve(spec(1, 10, Witcher()), scripted([1, 1, 4]))
        assert result.total == -4
        assert result.notes == (
            "💀 **CRITICAL FAILURE!** Rolled 1, subtracted 1",
            "💥 **FAILURE CONTINUES!** Subtracted 4",
        )


class TestCypherSystem:
    def test_minor_effect(self, scripted) -> None:
        result = resolve(spec(1, 20, CypherSystem(3)), scripted([18]))
        assert result.total == 18
        assert result.system == CypherOutcome(level=3, target=9, passed=True)
        assert result.notes == (
            "**SUCCESS** (rolled 18 vs target 9)",
            "**MINOR EFFECT** (17-19)",
            "Cypher System - Level 3 Task",
        )

    def test_gm_intrusion(self, scripted) -> None:
        result = resolve(spec(1, 20, CypherSystem(2)), scripted([1]))
        assert result.system.passed is False
        assert result.notes == (
            "**FAILURE** (rolled 1 vs target 6)",
            "**GM INTRUSION** (Natural 1)",
            "Cypher System - Level 2 Task",
        )

    def test_major_effect(self, scripted) -> None:
        result = resolve(spec(1, 20, CypherSystem(10)), scripted([20]))
        assert "**MAJOR EFFECT** (Natural 20)" in result.notes


class TestShadowrun:
    def test_glitch_with_successes(self, scripted) -> None:
        result = resolve(spec(4, 6, Target(5), Shadowrun()), scripted([1, 1, 1, 5]))
        assert result.successes == 1
        assert result.notes[-1].startswith("⚠️ **GLITCH!**")

    def test_critical_glitch(self, scripted) -> None:
        result = resolve(spec(4, 6, Target(5), Shadowrun()), scripted([1, 1, 1, 2]))
        assert result.successes == 0
        assert result.notes[-1].startswith("💀 **CRITICAL GLITCH!**")

    def test_half_ones_is_not_a_glitch(self, scripted) -> None:
        result = resolve(spec(4, 6, Target(5), Shadowrun()), scripted([1, 1, 5, 6]))
        assert result.notes == ()


class TestSavageWorlds:
    def test_trait_die_explodes_and_wins(self, scripted) -> None:
        result = resolve(spec(1, 8, SavageWorlds()), scripted([8, 3, 4]))
        assert result.total == 11
        assert result.kept_rolls == (8, 3)
        assert result.system == SavageWorldsOutcome(11, 4, True, False)
        assert result.notes == (
            "Trait die (d8) kept: 11 beats Wild die (d6): 4",
            "Trait die exploded 1 times",
            "Savage Worlds: Trait die + Wild die, keep highest",
        )

    def test_wild_die_wins_with_arithmetic(self, scripted) -> None:
        result = resolve(spec(1, 4, SavageWorlds(), Add(2)), scripted([2, 6, 5]))
        assert result.total == 13
        assert result.kept_rolls == (6, 5)
        assert result.system.trait_kept is False

    def test_snake_eyes(self, scripted) -> None:
        result = resolve(spec(1, 8, SavageWorlds()), scripted([1, 1]))
        assert result.system.snake_eyes
        assert result.notes[:2] == (
            "🐍 **SNAKE EYES!** Critical Failure - both dice rolled 1",
            "Tie: both Trait die (d8) and Wild die (d6) rolled 1",
        )


class TestMarvelMultiverse:
    def test_marvel_symbol_counts_as_six(self, scripted) -> None:
        result = resolve(spec(3, 6, MarvelMultiverse()), scripted([4, 1, 2]))
        assert result.total == 12
        assert result.system == MarvelOutcome(marvel_die=1, fantastic=True)
        assert result.notes == ("Fantastic! Marvel die rolled Marvel symbol, counts as 6",)
        assert len(result.dice_groups) == 1

    def test_edge_rerolls_lowest(self, scripted) -> None:
        result = resolve(spec(3, 6, MarvelMultiverse(edges=1)), scripted([2, 5, 3, 6]))
        assert result.total == 14
        assert result.notes == ("1 edge", "Edge 1: Rerolled 2 → 6")
        assert [g.rolls for g in result.dice_groups] == [(2, 5, 3), (6, 5, 3)]

    def test_troubles_keep_lower(self, scripted) -> None:
        result = resolve(spec(3, 6, MarvelMultiverse(troubles=2)), scripted([6, 4, 5, 2, 6]))
        assert result.total == 11
        assert result.notes == (
            "2 troubles",
            "Trouble rerolls: #1: 6 → 2, #2: 5 → 6 (kept 5)",
        )

    def test_rerolled_marvel_symbol_loses_fantastic(self, scripted) -> None:
        result = resolve(spec(3, 6, MarvelMultiverse(troubles=1)), scripted([3, 1, 2, 4]))
        assert result.total == 9
        assert result.system == MarvelOutcome(marvel_die=1, fantastic=False)


class TestPoolSystems:
    def test_silhouette_extra_sixes(self, scripted) -> None:
        result = resolve(spec(3, 6, Silhouette()), scripted([6, 6, 2]))
        assert result.total == 7
        assert result.notes == ("1 extra 6 (+1)",)

    def test_silhouette_highest_die(self, scripted) -> None:
        result = resolve(spec(3, 6, Silhouette()), scripted([4, 2, 5]))
        assert result.total == 5
        assert result.notes == ()

    def test_brave_new_world_explosion(self, scripted) -> None:
        result = resolve(spec(3, 6, BraveNewWorld()), scripted([6, 2, 3, 4]))
        assert result.total == 10
        assert result.kept_rolls == (10, 6, 3, 2)
        assert result.notes == (
            "1 die exploded on 6s",
            "Brave New World: 3-die pool, highest result: 10",
        )

    def test_brave_new_world_disaster(self, scripted) -> None:
        result = resolve(spec(4, 6, BraveNewWorld()), scripted([1, 1, 1, 6, 5]))
        assert result.total == 0
        assert result.notes[0] == "Disaster! Majority of dice rolled 1s - automatic failure"

    @pytest.mark.parametrize("value, damage", [(1, 1), (2, 2), (3, 0), (4, 0), (5, 1), (6, 1)])
    def test_conan_damage_chart(self, value: int, damage: int) -> None:
        assert conan_damage(value) == damage

    def test_conan_skill_dice(self, scripted) -> None:
        result = resolve(spec(3, 20, ConanSkill()), scripted([4, 15, 20]))
        assert result.successes == 3

    def test_conan_combat_dice(self, scripted) -> None:
        result = resolve(spec(2, 20, ConanSkill(), AddDice(spec(2, 6))), scripted([12, 3, 5, 3]))
        assert result.successes == 3
        assert result.notes == ("1 special effect", "1=1, 2=2, 3-4=0, 5-6=1+special")


class TestFudge:
    def test_symbols_and_total(self, scripted) -> None:
        result = resolve(spec(4, 3, Fudge()), scripted([1, 2, 3, 3]))
        assert result.total == 1
        assert result.system == FudgeOutcome(symbols=("+", "+", " ", "-"))
        assert result.notes == ("Fudge dice: 1=(-), 2=( ), 3=(+)",)

    def test_arithmetic_after_conversion(self, scripted) -> None:
        result = resolve(spec(4, 3, Fudge(), Add(2)), scripted([1, 1, 1, 1]))
        assert result.total == -2

    def test_requires_d3(self, scripted) -> None:
        with pytest.raises(ResolutionError, match="d3"):
            resolve(spec(2, 6, Fudge()), scripted([1, 2]))


class TestGodbound:
    @pytest.mark.parametrize("value, damage", [
        (-1, 0), (1, 0), (2, 1), (5, 1), (6, 2), (9, 2), (10, 4), (20, 4),
    ])
    def test_chart(self, value: int, damage: int) -> None:
        assert godbound_chart(value) == damage

    def test_per_die_conversion(self, scripted) -> None:
        result = resolve(spec(3, 8, Godbound()), scripted([1, 5, 8]))
        assert result.system == GodboundOutcome(damage=3)
        assert result.total == 3
        assert "Damage chart conversions: [1 → 0, 5 → 1, 8 → 2]" in result.notes

    def test_total_conversion_after_arithmetic(self, scripted) -> None:
        result = resolve(spec(1, 20, Godbound(), Add(2)), scripted([8]))
        assert result.system.damage == 4
        assert "Damage chart: 10 → 4" in result.notes

    def test_straight_damage(self, scripted) -> None:
        result = resolve(spec(2, 10, Godbound(use_straight_damage=True)), scripted([7, 8]))
        assert result.system == GodboundOutcome(damage=15, straight=True)
        assert result.notes == ("Straight damage (bypasses chart)",)


class TestHeroSystem:
    def test_normal_damage(self, scripted) -> None:
        result = resolve(spec(3, 6, HeroSystem(HeroSystemType.NORMAL)), scripted([1, 4, 6]))
        assert result.total == 11
        assert result.system == HeroSystemOutcome(HeroSystemType.NORMAL, body=3, stun=11)

    def test_killing_damage(self, scripted) -> None:
        result = resolve(spec(2, 6, HeroSystem(HeroSystemType.KILLING)), scripted([3, 5, 2]))
        assert result.system == HeroSystemOutcome(HeroSystemType.KILLING, body=8, stun=16, multiplier=2)
        assert result.total == 16
        assert result.notes == ("Killing damage: 8 BODY, 16 STUN (×2)",)

    def test_to_hit(self, scripted) -> None:
        result = resolve(spec(3, 6, HeroSystem(HeroSystemType.TO_HIT)), scripted([3, 3, 3]))
        assert result.total == 9
        assert "Target: 11 + OCV - DCV or less" in result.notes


class TestResult:
    def test_result_is_frozen(self, scripted) -> None:
        result = resolve(spec(1, 6), scripted([3]))
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.total = 5

    def test_carries_specification_fields(self, scripted) -> None:
        source = spec(1, 6, comment="c", label="l", private=True, original_expression="1d6")
        result = resolve(source, scripted([3]))
        assert (result.comment, result.label, result.private, result.original_expression) == (
            "c", "l", True, "1d6"
        )
