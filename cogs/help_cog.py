import discord
from discord.ext import commands


SYNTAX_HELP = (
    "**/roll <表達式>**\n"
    "`2d6+3`、`4d6 k3`、`1d20 + 1d4 ! 攻擊`、`(Fireball) 8d6`\n\n"
    "**修正**\n"
    "`e#` 爆骰一次、`ie#` 無限爆骰、`r#` 重擲一次、`ir#` 無限重擲\n"
    "`rg#` / `irg#` 重擲大於等於門檻的骰子\n"
    "`k#` 保留高、`kl#` 保留低、`km#` 保留中間、`d#` 捨棄低\n"
    "`t#` 成功門檻、`tl#` 小於等於門檻算成功、`f#` 失敗門檻、`b#` 大失敗門檻、`c` 最大面抵銷 1\n"
    "`+ - * /` 算術，`+ NdS` / `* NdS` 額外骰組，`200 / 2d4` 數字可寫在前面\n"
    "計數修正之前的算術逐骰套用，之後的算術加在成功數上\n\n"
    "**旗標**（放在最前面）\n"
    "`p` 私密、`s` 簡化、`nr` 不顯示結果、`ul` 不排序\n\n"
    "**多次擲骰**\n"
    "`6 4d6 k3` 擲骰組（2-20 組），`1d20; 2d6` 分號分隔（最多 4 段）"
)

ALIAS_HELP = (
    "**常用別名**\n"
    "`+d20` / `-d20` 優勢 / 劣勢，`+d%` / `-d%` 百分骰優劣勢\n"
    "`attack+5`、`skill`、`save` → `1d20`\n"
    "`dndstats` → `6 4d6 k3`，`age` → `2d6 + 1d6`\n"
    "`dd34` → `1d3 * 10 + 1d4`，`3d%` → `3d100`"
)

SYSTEM_HELP = (
    "**遊戲系統**\n"
    "`4cod` / `4cod8` / `4cod9` / `4codr` / `4cod + 2` Chronicles of Darkness\n"
    "`5wod8` / `5wod8c` / `5wod8 + 1` World of Darkness，`sr6` Shadowrun（含失誤判定），`sp5` Storypath\n"
    "`4yz` Year Zero，`snm5` Sunsails，`ex5` / `ex5t8` Exalted\n"
    "`4df` Fudge，`6wh4+` Warhammer，`d6s4+2` D6 System\n"
    "`wng 4d6` / `wng dn3 4d6` / `wng w2 4d6` / `wng 4d6 !soak` Wrath & Glory\n"
    "`gb 3d8` / `gbs 2d10` Godbound，`dh 3d10` Dark Heresy\n"
    "`3hsn` / `2.5hsk` / `2hsk1` / `hsh` Hero System，`ed12` / `ed4e12` Earthdawn\n"
    "`sw8` Savage Worlds，`cpr` Cyberpunk Red，`wit` Witcher，`cs 3` Cypher System\n"
    "`conan3` Conan 2d20，`mm` / `mm 2e` / `mm t` Marvel Multiverse\n"
    "`sil3` Silhouette，`bnw4` Brave New World"
)

HELP_PAGES = {
    "help": SYNTAX_HELP,
    "help alias": ALIAS_HELP,
    "help system": SYSTEM_HELP,
}


def help_embed(page: str = "help") -> discord.Embed:
    """建立說明嵌入訊息"""
    return discord.Embed(
        title="擲骰說明",
        description=HELP_PAGES.get(page, SYNTAX_HELP),
        color=0x1abc9c
    )


class HelpCog(commands.Cog, name="Help"):
    """幫助相關指令"""
    def __init__(self, bot, config_manager):
        self.bot = bot
        self.config_manager = config_manager

    @commands.hybrid_command(name="help", description="顯示指令說明")
    async def help_command(self, ctx):
        """顯示幫助信息"""
        await ctx.send(embed=help_embed(), view=HelpView())


class HelpView(discord.ui.View):
    """幫助視圖，按鈕切換說明頁"""
    def __init__(self):
        super().__init__(timeout=120)  # 2分鐘後超時

    async def _show(self, interaction: discord.Interaction, page: str):
        await interaction.response.edit_message(embed=help_embed(page), view=self)

    @discord.ui.button(label="語法", style=discord.ButtonStyle.primary)
    async def show_syntax(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._show(interaction, "help")

    @discord.ui.button(label="別名", style=discord.ButtonStyle.primary)
    async def show_aliases(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._show(interaction, "help alias")

    @discord.ui.button(label="遊戲系統", style=discord.ButtonStyle.secondary)
    async def show_systems(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._show(interaction, "help system")


async def setup(bot):
    """設置Cog"""
    await bot.add_cog(HelpCog(bot, bot.config_manager))
