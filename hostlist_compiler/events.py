# -*- coding: utf-8 -*-
"""编译过程事件通知

处理器抛出的异常只记录日志，不影响编译流程。
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Optional[Callable[[Dict[str, Any]], None]]

EVENT_NAMES = (
    'source_start',
    'source_complete',
    'source_error',
    'transformation_start',
    'transformation_complete',
    'progress',
    'compilation_complete',
)


@dataclass
class CompilerEvents:
    """事件处理器集合，未设置的事件不触发"""
    on_source_start: Handler = None
    on_source_complete: Handler = None
    on_source_error: Handler = None
    on_transformation_start: Handler = None
    on_transformation_complete: Handler = None
    on_progress: Handler = None
    on_compilation_complete: Handler = None


class EventEmitter:
    """把事件分发给已注册的处理器集合"""

    def __init__(self, *listeners: Optional[CompilerEvents]):
        self._listeners: List[CompilerEvents] = [listener for listener in listeners if listener is not None]

    def add(self, listener: CompilerEvents) -> None:
        self._listeners.append(listener)

    @property
    def listeners(self) -> List[CompilerEvents]:
        return list(self._listeners)

    @property
    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        if name not in EVENT_NAMES:
            raise ValueError(f"未知事件: {name}")
        for listener in self._listeners:
            handler = getattr(listener, f"on_{name}", None)
            if handler is None:
                continue
            try:
                handler(payload)
            except Exception:
                logger.exception(f"事件处理器出错: {name}")
