import discord
from discord.ext import commands
from dataclasses import replace
from typing import List

from models.types import RollResult
from utils.dice import parse_and_roll
from utils.render import render_many
from utils.logger import get_logger
from cogs.help_cog import HELP_PAGES, help_embed

DISCORD_MESSAGE_LIMIT = 2000
SIMPLIFIED_COMMENT = "Simplified roll due to character limit"

logger = get_logger()


def format_roll_message(user: str, expression: str, results: List[RollResult]) -> str:
    """組合擲骰回覆訊息"""
    rendered = render_many(results)
    if len(results) > 1:
        rendered = "\n" + rendered

    if any(r.private for r in results):
        return f"🎲 **Private Roll** `/roll {expression}` {rendered}"
    return f"🎲 **{user}** Request: `/roll {expression}` {rendered}"


def format_error_message(user: str, expression: str, error: Exception) -> str:
    """組合錯誤訊息"""
    return f"🎲 **{user}** used `/roll {expression}` - ❌ **Error**: {error}"


def fit_to_limit(user: str, expression: str, results: List[RollResult],
                 limit: int = DISCORD_MESSAGE_LIMIT) -> str:
    """
    訊息超過長度限制時改用簡化結果，仍然太長則截斷
    """
    message = format_roll_message(user, expression, results)
    if len(message) <= limit:
        return message

    simplified = [replace(r, simple=True, comment=SIMPLIFIED_COMMENT) for r in results]
    message = format_roll_message(user, expression, simplified)
    if len(message) <= limit:
        return message

    return message[:limit - 1] + "…"


class DiceCog(commands.Cog, name="Dice"):
    """骰子相關指令"""
    def __init__(self, bot, config_manager):
        self.bot = bot
        self.config_manager = config_manager

    @commands.hybrid_command(name="roll", aliases=["r"], description="擲骰子")
    async def roll_command(self, ctx, *, expression: str):
        """擲骰子"""
        key = expression.strip().lower()
        if key in HELP_PAGES:
            await ctx.send(embed=help_embed(key), ephemeral=True)
            return

        user = ctx.author.display_name
        rules = self.config_manager.get_guild_config(ctx.guild.id) if ctx.guild else None
        request = expression.split("!", 1)[0].strip()

        try:
            results = parse_and_roll(expression, limits=self.config_manager.dice_limits)
        except ValueError as e:
            logger.warning(f"{user} 擲骰失敗: {expression} ({e})")
            embed = discord.Embed(
                description=format_error_message(user, request, e),
                color=0xff0000
            )
            await ctx.send(embed=embed)
            return

        if rules and rules.simple_by_default:
            results = [replace(r, simple=True) for r in results]
        if rules and rules.private_by_default:
            results = [replace(r, private=True) for r in results]

        limit = self.config_manager.bot_config.message_limit
        message = fit_to_limit(user, expression, results, limit)
        logger.info(f"{user} 擲骰: {expression}")

        if any(r.private for r in results):
            if ctx.interaction:
                await ctx.send(message, ephemeral=True)
            else:
                await ctx.author.send(message)
            return

        await ctx.send(message)


async def setup(bot):
    """設置Cog"""
    await bot.add_cog(DiceCog(bot, bot.config_manager))
