"""structlog ベースのロガー設定"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from .config import LogSection

LOGGER_NAME = "k1s0_local_eval"

# 再設定時に差し替えるハンドラーの識別名
_HANDLER_NAME = "k1s0_local_eval"


def _install_handler(level: int, stream: TextIO | None) -> None:
    lib_logger = logging.getLogger(LOGGER_NAME)
    lib_logger.setLevel(level)
    for handler in [h for h in lib_logger.handlers if h.get_name() == _HANDLER_NAME]:
        lib_logger.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    lib_logger.addHandler(handler)
    lib_logger.propagate = False


def new_logger(
    section: LogSection | None = None, stream: TextIO | None = None
) -> structlog.stdlib.BoundLogger:
    """LogSection に従ってライブラリのログ出力を設定し、ロガーを返す。

    ルートロガーには触れず ``k1s0_local_eval`` 配下のロガーだけを設定する。
    何度呼んでもハンドラーは 1 つに保たれる。

    Args:
        section: ログ設定。省略時は INFO / json。
        stream: 出力先。省略時は標準出力。
    """
    section = section or LogSection()
    level = getattr(logging, section.level.upper(), logging.INFO)
    _install_handler(level, stream)

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if section.format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # モジュールレベルのロガーにも再設定を反映させる
        cache_logger_on_first_use=False,
    )
    return structlog.stdlib.get_logger(LOGGER_NAME)
