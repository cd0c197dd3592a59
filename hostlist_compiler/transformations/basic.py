# -*- coding: utf-8 -*-
"""逐行处理的简单转换"""

import logging
from typing import List, Optional

from ..config import TransformationType
from ..rules import (
    RuleKind,
    classify,
    contains_non_ascii,
    convert_non_ascii_to_punycode,
    is_comment,
    is_empty,
    is_etc_hosts_rule,
)
from .base import Transformation, TransformationContext

logger = logging.getLogger(__name__)

# 在 DNS 拦截中没有意义的修饰符
UNSUPPORTED_MODIFIERS = frozenset(
    name
    for base in ('third-party', '3p', 'all', 'document', 'doc', 'popup', 'network')
    for name in (base, f'~{base}')
)


class ConvertToAsciiTransformation(Transformation):
    type = TransformationType.CONVERT_TO_ASCII

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        result = []
        for line in rules:
            if is_comment(line) or is_empty(line) or not contains_non_ascii(line):
                result.append(line)
                continue
            converted = convert_non_ascii_to_punycode(line)
            if converted != line:
                logger.debug(f"转换为 punycode: {line} -> {converted}")
            result.append(converted)
        return result


class TrimLinesTransformation(Transformation):
    type = TransformationType.TRIM_LINES

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        return [line.strip(' \t') for line in rules]


class RemoveCommentsTransformation(Transformation):
    type = TransformationType.REMOVE_COMMENTS

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        return [line for line in rules if not is_comment(line)]


class RemoveModifiersTransformation(Transformation):
    """去掉 $third-party、$popup 等对 DNS 无意义的修饰符"""

    type = TransformationType.REMOVE_MODIFIERS

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        result = []
        for line in rules:
            rule = classify(line)
            if rule.kind is not RuleKind.NETWORK or not rule.modifiers:
                result.append(line)
                continue
            stripped = rule.without_modifiers(UNSUPPORTED_MODIFIERS)
            if stripped is rule:
                result.append(line)
            else:
                result.append(stripped.to_string())
        return result


class InvertAllowTransformation(Transformation):
    """把拦截规则转换为放行规则"""

    type = TransformationType.INVERT_ALLOW

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        result = []
        for line in rules:
            if (
                is_empty(line)
                or is_comment(line)
                or is_etc_hosts_rule(line)
                or line.strip().startswith('@@')
            ):
                result.append(line)
            else:
                result.append(f"@@{line}")
        return result


class RemoveEmptyLinesTransformation(Transformation):
    type = TransformationType.REMOVE_EMPTY_LINES

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        return [line for line in rules if not is_empty(line)]


class InsertFinalNewLineTransformation(Transformation):
    type = TransformationType.INSERT_FINAL_NEW_LINE

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        if not rules or not is_empty(rules[-1]):
            return list(rules) + ['']
        return list(rules)
