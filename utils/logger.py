import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = 'DiceBot'


class DiscordLogger:
    """自定義日誌系統"""

    def __init__(self, log_file: str = "bot.log", level: int = logging.INFO):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)

        # 避免重複添加處理器
        if not self.logger.handlers:
            # 設置文件處理器（帶輪換）
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=1024*1024,  # 1MB
                backupCount=5,
                encoding='utf-8'
            )

            # 設置控制台處理器
            console_handler = logging.StreamHandler()

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            file_handler.setFormatter(formatter)
            console_handler.setFormatter(formatter)

            self.logger.addHandler(file_handler)
            self.logger.addHandler(console_handler)

    def info(self, message: str):
        """記錄信息級別日誌"""
        self.logger.info(message)

    def warning(self, message: str):
        """記錄警告級別日誌"""
        self.logger.warning(message)

    def error(self, message: str):
        """記錄錯誤級別日誌"""
        self.logger.error(message)

    def debug(self, message: str):
        """記錄調試級別日誌"""
        self.logger.debug(message)


_logger: Optional[DiscordLogger] = None


def get_logger() -> DiscordLogger:
    """獲取日誌實例（首次調用時才建立日誌文件）"""
    global _logger
    if _logger is None:
        _logger = DiscordLogger()
    return _logger


def get_module_logger(module: str) -> logging.Logger:
    """核心模組用的子日誌器，不會自行建立處理器"""
    return logging.getLogger(f"{LOGGER_NAME}.{module}")
