"""pkgdocs 日志配置

拉取阶段在线程池里并发进行，各包的日志交错输出，因此拉取相关的记录
通过 extra 携带 package / status / attempt 字段：文本格式追加在行尾，
JSON 格式作为独立键，CI 中可按包名过滤。

环境变量:
    PKGDOCS_LOG_LEVEL  日志级别，默认 INFO
    PKGDOCS_LOG_JSON   为 1 时输出 JSON 行
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Mapping

# 通过 logger.info(..., extra={"package": name}) 附加的字段
_EXTRA_FIELDS = ("package", "status", "attempt")

_TEXT_FMT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


def _extras(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: getattr(record, key)
        for key in _EXTRA_FIELDS
        if getattr(record, key, None) is not None
    }


class TextFormatter(logging.Formatter):
    """人类可读格式，行尾追加 {package=... status=...}"""

    def __init__(self) -> None:
        super().__init__(_TEXT_FMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if not extras:
            return line
        fields = " ".join(f"{k}={v}" for k, v in extras.items())
        head, sep, rest = line.partition("\n")
        return f"{head} {{{fields}}}{sep}{rest}"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON，供 CI 流水线消费

    输出示例:
        {"timestamp": "...", "level": "INFO", "logger": "pkgdocs.core.aggregator",
         "message": "完成: HiGHS -> success (1 次请求)", "package": "HiGHS", "status": "success"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        entry.update(_extras(record))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器：单个 stderr handler（stdout 留给命令的汇总输出）

    重复调用会替换已有 handler，不会重复输出。
    """
    root = logging.getLogger()
    reset_logging(root)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.addHandler(handler)


def setup_logging_from_env(environ: Mapping[str, str] | None = None) -> None:
    """按 PKGDOCS_LOG_LEVEL / PKGDOCS_LOG_JSON 配置日志"""
    env = os.environ if environ is None else environ
    setup_logging(
        level=env.get("PKGDOCS_LOG_LEVEL", "INFO"),
        json_output=env.get("PKGDOCS_LOG_JSON", "") == "1",
    )


def reset_logging(root: logging.Logger | None = None) -> None:
    """移除并关闭根日志器上的全部 handler"""
    root = root or logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
