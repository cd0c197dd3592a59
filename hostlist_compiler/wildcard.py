# -*- coding: utf-8 -*-
"""通配符匹配

三种模式:
- ``/正则/``   去掉两侧斜杠后按正则搜索
- 含 ``*``     ``*`` 匹配任意字符序列，其余字符按字面匹配
- 纯文本       子串匹配

所有模式均不区分大小写，且不锚定首尾（子串语义）。
"""

import re
import logging
from typing import Optional, Pattern

from .errors import WildcardError

logger = logging.getLogger(__name__)

_STAR_RUN = re.compile(r'\*+')


def is_regex_pattern(pattern: str) -> bool:
    """是否为 /.../ 形式的正则模式"""
    return len(pattern) > 1 and pattern.startswith('/') and pattern.endswith('/')


class Wildcard:
    """编译后的通配符，构造后不可变"""

    __slots__ = ('_pattern', '_regex', '_needle')

    def __init__(self, pattern: str):
        if not pattern:
            raise WildcardError("通配符模式不能为空")

        self._pattern = pattern
        self._regex: Optional[Pattern] = None
        self._needle: Optional[str] = None

        if is_regex_pattern(pattern):
            try:
                self._regex = re.compile(pattern[1:-1], re.IGNORECASE | re.MULTILINE)
            except re.error as e:
                raise WildcardError(f"无效的正则表达式 {pattern}: {e}") from e
        elif '*' in pattern:
            parts = [re.escape(part) for part in _STAR_RUN.split(pattern)]
            self._regex = re.compile('.*'.join(parts), re.IGNORECASE | re.DOTALL)
        else:
            self._needle = pattern.lower()

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def is_regex(self) -> bool:
        return is_regex_pattern(self._pattern)

    @property
    def is_wildcard(self) -> bool:
        return not self.is_regex and '*' in self._pattern

    @property
    def is_plain(self) -> bool:
        return self._needle is not None

    def test(self, text: str) -> bool:
        """text 中任意位置匹配即返回 True"""
        if self._needle is not None:
            return self._needle in text.lower()
        return self._regex.search(text) is not None

    def matches_lowered(self, lowered: str) -> bool:
        """纯文本模式的快速路径，调用方负责预先转小写"""
        if self._needle is not None:
            return self._needle in lowered
        return self._regex.search(lowered) is not None

    def __repr__(self) -> str:
        return f"Wildcard({self._pattern!r})"

    def __str__(self) -> str:
        return self._pattern

    def __eq__(self, other) -> bool:
        return isinstance(other, Wildcard) and other._pattern == self._pattern

    def __hash__(self) -> int:
        return hash(self._pattern)


def compile_wildcard(pattern: str) -> Wildcard:
    return Wildcard(pattern)


def test(rule: str, wildcard: Wildcard) -> bool:
    return wildcard.test(rule)
