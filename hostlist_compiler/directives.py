# -*- coding: utf-8 -*-
"""预处理指令：!#include、!#if/!#else/!#endif、!#safari_cb_affinity

条件表达式中的平台标识符替换为 true/false 后，由递归下降解析器求值，
不使用 eval。任何解析失败都按 false 处理。
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from .errors import FetchError
from .fetchers import ContentFetcher, resolve_include_path, split_lines

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

IF_DIRECTIVE = '!#if'
ELSE_DIRECTIVE = '!#else'
ENDIF_DIRECTIVE = '!#endif'
INCLUDE_DIRECTIVE = '!#include'
SAFARI_CB_AFFINITY = '!#safari_cb_affinity'

PLATFORM_IDENTIFIERS = (
    'windows', 'mac', 'android', 'ios',
    'ext_chromium', 'ext_ff', 'ext_edge', 'ext_opera', 'ext_safari', 'ext_ublock',
    'adguard', 'adguard_app_windows', 'adguard_app_mac', 'adguard_app_android', 'adguard_app_ios',
    'adguard_ext_chromium', 'adguard_ext_firefox', 'adguard_ext_edge', 'adguard_ext_opera',
    'adguard_ext_safari',
)

_PLATFORM_REGEXES = [(p, re.compile(rf'\b{p}\b', re.IGNORECASE)) for p in PLATFORM_IDENTIFIERS]
_BOOLEAN_LITERALS = re.compile(r'true|false', re.IGNORECASE)
_SAFE_REMAINDER = re.compile(r'^[!&|()\s]*$')
_TOKEN_REGEX = re.compile(r'\s*(true|false|&&|\|\||!|\(|\))', re.IGNORECASE)


def _tokenize(expression: str) -> List[str]:
    tokens = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = _TOKEN_REGEX.match(expression, pos)
        if not match:
            raise ValueError(f"无法识别的字符: {expression[pos:]!r}")
        tokens.append(match.group(1).lower())
        pos = match.end()
    return tokens


class _BooleanParser:
    """expr := and ('||' and)* ; and := unary ('&&' unary)* ; unary := '!' unary | atom"""

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise ValueError("表达式意外结束")
        self.pos += 1
        return token

    def parse(self) -> bool:
        if not self.tokens:
            raise ValueError("空表达式")
        value = self._or()
        if self._peek() is not None:
            raise ValueError(f"多余的记号: {self._peek()}")
        return value

    def _or(self) -> bool:
        value = self._and()
        while self._peek() == '||':
            self._take()
            right = self._and()
            value = value or right
        return value

    def _and(self) -> bool:
        value = self._unary()
        while self._peek() == '&&':
            self._take()
            right = self._unary()
            value = value and right
        return value

    def _unary(self) -> bool:
        if self._peek() == '!':
            self._take()
            return not self._unary()
        return self._atom()

    def _atom(self) -> bool:
        token = self._take()
        if token == 'true':
            return True
        if token == 'false':
            return False
        if token == '(':
            value = self._or()
            if self._take() != ')':
                raise ValueError("括号不匹配")
            return value
        raise ValueError(f"意外的记号: {token}")


def evaluate_condition(condition: str, platform: Optional[str] = None) -> bool:
    """求值 !#if 条件；空条件为真，非法表达式为假"""
    expression = condition.strip()
    if not expression:
        return True

    target = platform.lower() if platform else None
    for name, regex in _PLATFORM_REGEXES:
        expression = regex.sub('true' if name == target else 'false', expression)

    if not _SAFE_REMAINDER.match(_BOOLEAN_LITERALS.sub('', expression)):
        logger.debug(f"条件包含未知标识符，按 false 处理: {condition}")
        return False

    try:
        return _BooleanParser(_tokenize(expression)).parse()
    except ValueError as e:
        logger.debug(f"条件表达式无效，按 false 处理: {condition} ({e})")
        return False


def _is_directive(line: str, directive: str) -> bool:
    if not line.startswith(directive):
        return False
    return len(line) == len(directive) or line[len(directive)].isspace()


@dataclass
class _ResolveState:
    visited: Set[str] = field(default_factory=set)


class DirectiveResolver:
    """获取源并展开其中的预处理指令"""

    def __init__(
        self,
        fetcher: ContentFetcher,
        max_depth: int = DEFAULT_MAX_DEPTH,
        target_platform: Optional[str] = None,
    ):
        self.fetcher = fetcher
        self.max_depth = max_depth
        self.target_platform = target_platform

    async def resolve(self, source: str) -> List[str]:
        """顶层调用：每次使用新的已访问集合，顶层获取失败向上抛出"""
        return await self._download(source, 0, _ResolveState())

    async def resolve_lines(self, lines: List[str], base: str = '') -> List[str]:
        """展开已有内容中的指令，include 相对 base 解析"""
        return await self._process(lines, base, 0, _ResolveState())

    async def _download(self, source: str, depth: int, state: _ResolveState) -> List[str]:
        if source in state.visited:
            logger.warning(f"检测到循环包含，已跳过: {source}")
            return []
        if depth > self.max_depth:
            logger.warning(f"超过最大包含深度 {self.max_depth}，已跳过: {source}")
            return []
        state.visited.add(source)

        try:
            content = await self.fetcher.fetch(source)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(source, str(e)) from e

        return await self._process(split_lines(content), source, depth, state)

    async def _process(self, lines: List[str], base: str, depth: int, state: _ResolveState) -> List[str]:
        result: List[str] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            trimmed = line.strip()

            if _is_directive(trimmed, IF_DIRECTIVE):
                condition = trimmed[len(IF_DIRECTIVE):].strip()
                if_lines, else_lines, end_index = self._parse_conditional(lines, i)
                chosen = if_lines if evaluate_condition(condition, self.target_platform) else else_lines
                result.extend(await self._process(chosen, base, depth, state))
                i = end_index + 1
                continue

            if _is_directive(trimmed, INCLUDE_DIRECTIVE):
                include_path = trimmed[len(INCLUDE_DIRECTIVE):].strip()
                if include_path:
                    result.extend(await self._include(include_path, base, depth, state))
                i += 1
                continue

            if trimmed.startswith(SAFARI_CB_AFFINITY):
                i = self._skip_safari_block(lines, i)
                continue

            if trimmed in (ELSE_DIRECTIVE, ENDIF_DIRECTIVE):
                i += 1
                continue

            result.append(line)
            i += 1

        return result

    async def _include(self, include_path: str, base: str, depth: int, state: _ResolveState) -> List[str]:
        resolved = resolve_include_path(include_path, base)
        try:
            return await self._download(resolved, depth + 1, state)
        except FetchError as e:
            logger.warning(f"包含文件获取失败，已跳过: {resolved} ({e})")
            return []

    @staticmethod
    def _parse_conditional(lines: List[str], start: int) -> Tuple[List[str], List[str], int]:
        """返回 (if 分支, else 分支, 匹配的 !#endif 下标)"""
        if_lines: List[str] = []
        else_lines: List[str] = []
        in_else = False
        nesting = 1

        for idx in range(start + 1, len(lines)):
            line = lines[idx]
            trimmed = line.strip()
            if _is_directive(trimmed, IF_DIRECTIVE):
                nesting += 1
            elif trimmed == ENDIF_DIRECTIVE:
                nesting -= 1
                if nesting == 0:
                    return if_lines, else_lines, idx
            elif trimmed == ELSE_DIRECTIVE and nesting == 1:
                in_else = True
                continue
            (else_lines if in_else else if_lines).append(line)

        logger.warning(f"!#if 缺少匹配的 !#endif: {lines[start].strip()}")
        return if_lines, else_lines, len(lines) - 1

    @staticmethod
    def _skip_safari_block(lines: List[str], start: int) -> int:
        """跳过整个块，返回块之后的下标"""
        opening = lines[start].strip()
        for idx in range(start + 1, len(lines)):
            trimmed = lines[idx].strip()
            if trimmed == SAFARI_CB_AFFINITY or trimmed == opening:
                return idx + 1
        return len(lines)


async def resolve(
    source: str,
    fetcher: ContentFetcher,
    max_depth: int = DEFAULT_MAX_DEPTH,
    target_platform: Optional[str] = None,
) -> List[str]:
    return await DirectiveResolver(fetcher, max_depth, target_platform).resolve(source)
