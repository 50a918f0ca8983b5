"""
日志封装：统一的日志记录器

- 日志写入 {LOG_PATH}/ledger.log，按天轮转，保留 30 天
- 支持 PLAIN（默认，便于 grep）和 JSON 两种格式，由 settings.LOG_FORMAT 切换
- 自动注入请求上下文（request_id、user_id、username、ip、path）
- 业务字段通过 logger_extra 传入，敏感键自动打码
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from django.conf import settings as django_settings

_configured = False

# LogRecord 自带属性，格式化时不当作业务字段输出
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


def _record_fields(record: logging.LogRecord) -> dict:
    """取出通过 extra 注入的业务字段"""
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


class LedgerJSONFormatter(logging.Formatter):
    """
    JSON 格式：一行一个对象，便于日志平台采集

    {"timestamp": "2026-05-02 10:00:00", "level": "INFO", "logger": "apps.auctions.services",
     "message": "出价成功", "auction_id": 3, "amount": 120, "request_id": "a1b2c3d4e5f6"}
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        payload = {
            "timestamp": datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_record_fields(record))
        for key in ("request_id", "user_id", "username", "ip", "path"):
            if ctx.get(key) not in (None, ""):
                payload.setdefault(key, ctx[key])
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LedgerPlainFormatter(logging.Formatter):
    """
    纯文本格式：

    {timestamp} {level} {logger} {message} {k=v ...} [{username}|{user_id}|{ip}|{path}]
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        fields = " ".join(f"{key}={value}" for key, value in _record_fields(record).items())
        context_info = "[{}|{}|{}|{}]".format(
            ctx.get("username") or "-",
            ctx.get("user_id") if ctx.get("user_id") is not None else "-",
            ctx.get("ip") or "-",
            ctx.get("path") or "-",
        )
        line = f"{timestamp} {record.levelname} {record.name} {record.getMessage()}"
        if fields:
            line += f" {fields}"
        line += f" {context_info}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class SafeTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """轮转失败（文件被占用）时跳过本次轮转"""

    def doRollover(self):
        try:
            super().doRollover()
        except PermissionError:
            pass


def get_log_file_path() -> str:
    """{settings.LOG_PATH}/ledger.log，目录不存在时自动创建"""
    log_dir = Path(getattr(django_settings, "LOG_PATH", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / "ledger.log")


def configure_logging(force: bool = False, *, level: Optional[int] = None, log_file_path: Optional[str] = None) -> None:
    """
    配置根 logger，默认只执行一次

    参数：
        force: 是否强制重新配置
        level: 日志级别，默认读取 settings.LOG_LEVEL
        log_file_path: 日志文件路径，默认 get_log_file_path()
    """
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else getattr(
        logging, str(getattr(django_settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO
    )
    log_file_path = log_file_path or get_log_file_path()
    if str(getattr(django_settings, "LOG_FORMAT", "plain")).lower() == "json":
        formatter: logging.Formatter = LedgerJSONFormatter()
    else:
        formatter = LedgerPlainFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        handler.close()
    root_logger.handlers.clear()

    file_handler = SafeTimedRotatingFileHandler(
        filename=log_file_path,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
        delay=True,
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if os.getenv("DEBUG", "False").lower() == "true":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    获取 logger 实例

        logger = get_logger(__name__)
        logger.info("出价成功", extra=logger_extra({"auction_id": 1, "amount": 120}))
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


SENSITIVE_KEYS = {"password", "token", "access", "refresh", "secret", "qr_code", "expected_code", "answers"}


def sanitize_extra(extra: Optional[dict] = None) -> dict:
    """
    过滤敏感字段：密码、令牌、二维码明文、测验答案等
    """
    if not extra:
        return {}
    return {key: ("***" if key.lower() in SENSITIVE_KEYS else value) for key, value in extra.items()}


def logger_extra(extra: Optional[dict] = None) -> dict:
    """封装 extra，自动过滤敏感字段"""
    return sanitize_extra(extra)
