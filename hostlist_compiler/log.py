# -*- coding: utf-8 -*-
"""日志配置"""

import sys
import logging
from typing import Union

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOGGER_NAME = 'hostlist_compiler'


def setup_logger(level: Union[int, str, None] = None, stream=None) -> logging.Logger:
    """配置包级日志记录器，重复调用只更新级别"""
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level if level is not None else logging.INFO)

    if not any(getattr(h, '_hostlist_handler', False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._hostlist_handler = True
        logger.addHandler(handler)

    return logger

