# -*- coding: utf-8 -*-
"""转换流水线

执行顺序:
1. 排除 (exclusions / exclusions_sources)
2. 包含 (inclusions / inclusions_sources)
3. 按固定顺序执行请求的转换，与配置中的书写顺序无关
"""

import time
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from ..config import TransformationType
from ..errors import FetchError
from ..events import EventEmitter
from ..fetchers import ContentFetcher, split_lines
from ..rules import is_comment
from ..wildcard import Wildcard
from .base import Transformation, TransformationContext
from .basic import (
    ConvertToAsciiTransformation,
    InsertFinalNewLineTransformation,
    InvertAllowTransformation,
    RemoveCommentsTransformation,
    RemoveEmptyLinesTransformation,
    RemoveModifiersTransformation,
    TrimLinesTransformation,
)
from .compress import CompressTransformation
from .deduplicate import DeduplicateTransformation
from .validate import ValidateAllowIpTransformation, ValidateTransformation

logger = logging.getLogger(__name__)

CANONICAL_ORDER = (
    TransformationType.CONVERT_TO_ASCII,
    TransformationType.TRIM_LINES,
    TransformationType.REMOVE_COMMENTS,
    TransformationType.COMPRESS,
    TransformationType.REMOVE_MODIFIERS,
    TransformationType.INVERT_ALLOW,
    TransformationType.VALIDATE,
    TransformationType.VALIDATE_ALLOW_IP,
    TransformationType.DEDUPLICATE,
    TransformationType.REMOVE_EMPTY_LINES,
    TransformationType.INSERT_FINAL_NEW_LINE,
)


def create_registry() -> Dict[TransformationType, Transformation]:
    """转换类型 -> 实例 的静态映射"""
    transformations = (
        ConvertToAsciiTransformation(),
        TrimLinesTransformation(),
        RemoveCommentsTransformation(),
        CompressTransformation(),
        RemoveModifiersTransformation(),
        InvertAllowTransformation(),
        ValidateTransformation(),
        ValidateAllowIpTransformation(),
        DeduplicateTransformation(),
        RemoveEmptyLinesTransformation(),
        InsertFinalNewLineTransformation(),
    )
    return {t.type: t for t in transformations}


def ordered_transformations(requested: Iterable[Union[str, TransformationType]]) -> List[TransformationType]:
    """过滤掉未知名称，并按固定顺序排列"""
    wanted = set()
    for item in requested:
        parsed = TransformationType.parse(item)
        if parsed is None:
            logger.warning(f"忽略未知的转换类型: {item}")
            continue
        wanted.add(parsed)
    return [t for t in CANONICAL_ORDER if t in wanted]


def prepare_wildcards(patterns: Iterable[str]) -> List[Wildcard]:
    """去重、去空后编译；无效正则抛出 WildcardError"""
    unique = []
    seen = set()
    for pattern in patterns:
        if not pattern or not pattern.strip() or pattern in seen:
            continue
        seen.add(pattern)
        unique.append(pattern)
    return [Wildcard(p) for p in unique]


def _first_match(lowered: str, rule: str, plain: List[Wildcard], complex_: List[Wildcard]) -> Optional[Wildcard]:
    for wildcard in plain:
        if wildcard.matches_lowered(lowered):
            return wildcard
    for wildcard in complex_:
        if wildcard.test(rule):
            return wildcard
    return None


def _partition(wildcards: List[Wildcard]):
    plain = [w for w in wildcards if w.is_plain]
    complex_ = [w for w in wildcards if not w.is_plain]
    return plain, complex_


def exclude_rules(rules: List[str], wildcards: List[Wildcard]) -> List[str]:
    """删除匹配任意通配符的规则"""
    if not wildcards:
        return list(rules)
    plain, complex_ = _partition(wildcards)
    result = []
    for rule in rules:
        matched = _first_match(rule.lower(), rule, plain, complex_)
        if matched is not None:
            logger.debug(f"规则 {rule} 被排除: {matched.pattern}")
            continue
        result.append(rule)
    return result


def include_rules(rules: List[str], wildcards: List[Wildcard]) -> List[str]:
    """只保留匹配任意通配符的规则"""
    plain, complex_ = _partition(wildcards)
    result = []
    for rule in rules:
        if _first_match(rule.lower(), rule, plain, complex_) is not None:
            result.append(rule)
        else:
            logger.debug(f"规则 {rule} 未被包含")
    return result


def _option(cfg: Any, key: str) -> List[str]:
    if cfg is None:
        return []
    if isinstance(cfg, dict):
        value = cfg.get(key)
    else:
        value = getattr(cfg, key, None)
    return list(value or [])


class TransformationPipeline:
    """对规则列表应用排除、包含和转换"""

    def __init__(
        self,
        fetcher: Optional[ContentFetcher] = None,
        registry: Optional[Dict[TransformationType, Transformation]] = None,
        events: Optional[EventEmitter] = None,
    ):
        self.fetcher = fetcher
        self.registry = registry if registry is not None else create_registry()
        self.events = events or EventEmitter()

    async def load_patterns(self, sources: Iterable[str]) -> List[str]:
        """读取模式文件，跳过空行和注释；读取失败只记录警告"""
        patterns: List[str] = []
        for source in sources:
            if self.fetcher is None:
                logger.warning(f"未配置获取器，跳过模式文件: {source}")
                continue
            try:
                content = await self.fetcher.fetch(source)
            except FetchError as e:
                logger.warning(f"模式文件获取失败，已跳过: {source} ({e})")
                continue
            for line in split_lines(content):
                line = line.strip()
                if line and not is_comment(line):
                    patterns.append(line)
        return patterns

    async def _wildcards(self, cfg: Any, key: str) -> Optional[List[Wildcard]]:
        """未配置返回 None，已配置返回编译后的列表（可能为空）"""
        patterns = _option(cfg, key)
        sources = _option(cfg, f"{key}_sources")
        if not patterns and not sources:
            return None
        patterns.extend(await self.load_patterns(sources))
        return prepare_wildcards(patterns)

    async def transform(
        self,
        rules: List[str],
        cfg: Any = None,
        transformations: Optional[Iterable[Union[str, TransformationType]]] = None,
        source_name: Optional[str] = None,
    ) -> List[str]:
        if transformations is None:
            transformations = _option(cfg, 'transformations')
        context = TransformationContext(configuration=cfg, source_name=source_name)

        result = list(rules)
        exclusions = await self._wildcards(cfg, 'exclusions')
        if exclusions:
            before = len(result)
            result = exclude_rules(result, exclusions)
            logger.info(f"排除规则: {before} -> {len(result)}")

        inclusions = await self._wildcards(cfg, 'inclusions')
        if inclusions is not None:
            before = len(result)
            result = include_rules(result, inclusions) if inclusions else []
            logger.info(f"包含规则: {before} -> {len(result)}")

        return await self.apply(result, ordered_transformations(transformations), context)

    async def apply(
        self,
        rules: List[str],
        types: List[TransformationType],
        context: Optional[TransformationContext] = None,
    ) -> List[str]:
        """按给定顺序执行转换，每步前后触发事件"""
        result = list(rules)
        for transformation_type in types:
            transformation = self.registry[transformation_type]
            name = transformation.name
            input_count = len(result)
            self.events.emit('transformation_start', {'name': name, 'input_count': input_count})

            start = time.perf_counter()
            result = list(await transformation.execute(result, context))
            duration_ms = (time.perf_counter() - start) * 1000

            self.events.emit('transformation_complete', {
                'name': name,
                'input_count': input_count,
                'output_count': len(result),
                'duration_ms': duration_ms,
            })
            logger.info(f"{name}: {input_count} -> {len(result)} ({duration_ms:.1f}ms)")
        return result
