#!/usr/bin/env python3
"""
TRPG Dice Bot
支援多種遊戲系統的Discord擲骰機器人
"""

import asyncio
import os
import sys

import discord

# 確保路徑正確
sys.path.insert(0, os.path.dirname(__file__))

from bot import DiceBot
from utils.logger import get_logger


def main():
    """主函數"""
    logger = get_logger()

    logger.info("正在啟動擲骰機器人...")

    try:
        bot = DiceBot()
    except ValueError as e:
        logger.error(f"錯誤：{e}")
        sys.exit(1)

    try:
        asyncio.run(bot.start())
    except KeyboardInterrupt:
        logger.info("收到中斷信號，正在關閉機器人...")
    except discord.DiscordException as e:
        logger.error(f"機器人運行時出現錯誤: {e}")
    finally:
        logger.info("機器人已關閉")


if __name__ == "__main__":
    main()
