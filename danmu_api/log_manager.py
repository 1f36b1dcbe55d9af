import collections
import logging
import logging.handlers
from pathlib import Path
from typing import Iterable, List, Optional

from .config import LogConfig, settings

# 最近的日志保存在内存中，供 /api/logs 查看；setup_logging 会按配置重建
_recent_logs = collections.deque(maxlen=settings.log.recent_lines)


class RecentLogsHandler(logging.Handler):
    """把格式化后的日志放进双端队列，最新的在最前面。"""
    def __init__(self, deque):
        super().__init__()
        self.deque = deque

    def emit(self, record):
        self.deque.appendleft(self.format(record))


class MutedLoggersFilter(logging.Filter):
    """排除指定 logger (及其子 logger) 的日志，例如 httpx 对每个弹幕分段的请求日志。"""
    def __init__(self, names: Iterable[str]):
        super().__init__()
        self.prefixes = tuple(names)

    def filter(self, record):
        return not any(record.name == p or record.name.startswith(p + ".") for p in self.prefixes)


def setup_logging(log_dir: Optional[Path] = None, config: Optional[LogConfig] = None):
    """
    配置根日志记录器: 控制台、可轮转的日志文件 (config/logs/app.log)
    以及给 /api/logs 用的内存队列。应在应用启动时调用一次。
    """
    global _recent_logs
    config = config or settings.log
    log_dir = log_dir or Path(__file__).parent.parent / "config" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"

    verbose_formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s:%(lineno)d] [%(levelname)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    short_formatter = logging.Formatter('[%(asctime)s] [%(levelname)s] %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    logger = logging.getLogger()
    logger.setLevel(config.level.upper())

    # 热重载时清理旧的处理器，避免重复输出
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler()
    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=config.file_max_bytes, backupCount=config.file_backup_count, encoding='utf-8'
    )
    _recent_logs = collections.deque(maxlen=config.recent_lines)
    recent_handler = RecentLogsHandler(_recent_logs)
    recent_handler.addFilter(MutedLoggersFilter(config.muted_loggers))

    for handler in (console_handler, file_handler):
        handler.setFormatter(verbose_formatter)
        logger.addHandler(handler)
    recent_handler.setFormatter(short_formatter)
    logger.addHandler(recent_handler)

    logging.info("日志系统已初始化，日志将输出到控制台和 %s", log_file)


def get_logs() -> List[str]:
    """返回内存中保存的日志条目，最新的在前。"""
    return list(_recent_logs)
