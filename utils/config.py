import json
import os
from typing import Dict
from dataclasses import dataclass, asdict, fields


@dataclass
class DiceLimits:
    """擲骰上限配置"""
    max_dice_count: int = 500
    max_dice_sides: int = 1000
    max_input_length: int = 1000
    max_semicolon_rolls: int = 4
    min_roll_sets: int = 2
    max_roll_sets: int = 20
    max_alias_depth: int = 10
    max_nesting_depth: int = 20


@dataclass
class BotConfig:
    """機器人配置"""
    command_prefix: str = "!"
    message_limit: int = 2000


@dataclass
class GuildConfig:
    """公會配置"""
    private_by_default: bool = False
    simple_by_default: bool = False


DEFAULT_LIMITS = DiceLimits()


def _load_section(cls, data: dict):
    """只讀取 dataclass 認得的欄位，其餘忽略"""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


class ConfigManager:
    """配置管理器"""
    def __init__(self, config_path: str = "config.json"):
        self.config_path = config_path
        self.bot_config = BotConfig()
        self.dice_limits = DiceLimits()
        self.guild_configs: Dict[int, GuildConfig] = {}
        self.load_config()

    def load_config(self):
        """加載配置"""
        if os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self.bot_config = _load_section(BotConfig, data.get('bot', {}))
            self.dice_limits = _load_section(DiceLimits, data.get('dice', {}))

            # 加載公會配置
            guild_data = data.get('guilds', {})
            for guild_id, cfg in guild_data.items():
                self.guild_configs[int(guild_id)] = _load_section(GuildConfig, cfg)
        else:
            # 如果配置文件不存在，創建默認配置
            self.save_config()

    def save_config(self):
        """保存配置"""
        data = {
            'bot': asdict(self.bot_config),
            'dice': asdict(self.dice_limits),
            'guilds': {str(guild_id): asdict(config)
                       for guild_id, config in self.guild_configs.items()}
        }

        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def get_guild_config(self, guild_id: int) -> GuildConfig:
        """獲取公會配置"""
        return self.guild_configs.get(guild_id, GuildConfig())

    def set_guild_config(self, guild_id: int, config: GuildConfig):
        """設置公會配置"""
        self.guild_configs[guild_id] = config
        self.save_config()
