# -*- coding: utf-8 -*-
"""转换的统一抽象"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from ..config import TransformationType


@dataclass
class TransformationContext:
    """执行转换时附带的上下文"""
    configuration: Any = None
    source_name: Optional[str] = None


class Transformation(ABC):
    """规则列表 -> 规则列表 的转换，唯一入口为 execute"""

    type: TransformationType

    @property
    def name(self) -> str:
        return self.type.value

    @abstractmethod
    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
