# -*- coding: utf-8 -*-
"""编译流程

单个源: 获取并展开指令 -> 去掉上游头 -> 源级转换
整个列表: 并发编译各源 -> 拼接源头 -> 全局转换 -> 列表头 -> 校验和
"""

import time
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .config import CompilerSettings, Configuration, Source
from .directives import DirectiveResolver
from .errors import FetchError
from .events import CompilerEvents, EventEmitter
from .fetchers import ContentFetcher, create_default_fetcher
from .header import (
    add_checksum_to_header,
    generate_list_header,
    generate_source_header,
    strip_upstream_headers,
)
from .monitor import ResourceMonitor
from .transformations.pipeline import TransformationPipeline

logger = logging.getLogger(__name__)


@dataclass
class StageMetric:
    name: str
    input_count: int
    output_count: int
    duration_ms: float


@dataclass
class CompilationMetrics:
    """一次编译的统计数据"""
    total_duration_ms: float = 0.0
    source_count: int = 0
    output_rule_count: int = 0
    peak_memory_mb: float = 0.0
    source_rule_counts: Dict[str, int] = field(default_factory=dict)
    stages: List[StageMetric] = field(default_factory=list)


@dataclass
class CompilationResult:
    rules: List[str]
    metrics: CompilationMetrics


class SourceCompiler:
    """编译单个源"""

    def __init__(
        self,
        fetcher: ContentFetcher,
        pipeline: TransformationPipeline,
        settings: Optional[CompilerSettings] = None,
        events: Optional[EventEmitter] = None,
    ):
        self.settings = settings or CompilerSettings()
        self.pipeline = pipeline
        self.events = events or EventEmitter()
        self.resolver = DirectiveResolver(
            fetcher,
            max_depth=self.settings.max_include_depth,
            target_platform=self.settings.target_platform,
        )

    async def compile(self, source: Source, index: int = 0, total: int = 1) -> List[str]:
        label = source.name or source.source
        self.events.emit('source_start', {'source': source, 'index': index, 'total': total})
        logger.info(f"开始编译源 [{index + 1}/{total}]: {label}")
        start = time.perf_counter()

        try:
            rules = await self.resolver.resolve(source.source)
        except FetchError as e:
            logger.error(f"源获取失败 {label}: {e}")
            self.events.emit('source_error', {'source': source, 'index': index, 'total': total, 'error': e})
            raise

        logger.info(f"源 {label} 原始规则数: {len(rules)}")
        rules = strip_upstream_headers(rules)
        rules = await self.pipeline.transform(rules, source, source.transformations, source_name=label)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"源 {label} 编译完成: {len(rules)} 条规则 ({duration_ms:.1f}ms)")
        self.events.emit('source_complete', {
            'source': source,
            'index': index,
            'total': total,
            'rule_count': len(rules),
            'duration_ms': duration_ms,
        })
        return rules


class FilterCompiler:
    """根据配置编译完整的过滤列表"""

    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        fetcher: Optional[ContentFetcher] = None,
        events: Optional[CompilerEvents] = None,
    ):
        self.settings = settings or CompilerSettings()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or create_default_fetcher(self.settings)
        self.events = EventEmitter(events)

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    async def compile(self, configuration: Union[Configuration, Dict[str, Any]]) -> List[str]:
        result = await self.compile_with_metrics(configuration)
        return result.rules

    async def compile_with_metrics(
        self,
        configuration: Union[Configuration, Dict[str, Any]],
        timestamp: Optional[datetime] = None,
    ) -> CompilationResult:
        if not isinstance(configuration, Configuration):
            configuration = Configuration.from_dict(configuration)

        monitor = ResourceMonitor()
        metrics = CompilationMetrics(source_count=len(configuration.sources))

        def _record_stage(payload: Dict[str, Any]) -> None:
            metrics.stages.append(StageMetric(
                name=payload['name'],
                input_count=payload['input_count'],
                output_count=payload['output_count'],
                duration_ms=payload['duration_ms'],
            ))

        emitter = EventEmitter(*self.events.listeners, CompilerEvents(on_transformation_complete=_record_stage))
        pipeline = TransformationPipeline(fetcher=self.fetcher, events=emitter)
        source_compiler = SourceCompiler(self.fetcher, pipeline, self.settings, emitter)

        logger.info(f"开始编译: {configuration.name} ({len(configuration.sources)} 个源)")
        total = len(configuration.sources)
        results = await asyncio.gather(
            *(source_compiler.compile(source, idx, total) for idx, source in enumerate(configuration.sources)),
            return_exceptions=True
        )
        monitor.sample()

        final_list: List[str] = []
        for idx, (source, rules) in enumerate(zip(configuration.sources, results)):
            if isinstance(rules, BaseException):
                raise rules
            metrics.source_rule_counts[source.name or source.source] = len(rules)
            final_list.extend(generate_source_header(source))
            final_list.extend(rules)
            emitter.emit('progress', {
                'phase': 'sources',
                'current': idx + 1,
                'total': total,
                'message': f"已合并 {source.name or source.source}",
            })

        emitter.emit('progress', {
            'phase': 'transformations',
            'current': 0,
            'total': len(configuration.transformations),
            'message': f"执行 {len(configuration.transformations)} 个全局转换",
        })
        final_list = await pipeline.transform(final_list, configuration, configuration.transformations)

        rules = generate_list_header(configuration, timestamp) + final_list
        rules = add_checksum_to_header(rules)

        monitor.sample()
        metrics.total_duration_ms = monitor.elapsed * 1000
        metrics.output_rule_count = len(rules)
        metrics.peak_memory_mb = monitor.peak_memory
        logger.info(f"编译完成: 最终列表 {len(rules)} 行，耗时 {metrics.total_duration_ms:.1f}ms")

        emitter.emit('compilation_complete', {
            'rule_count': len(rules),
            'total_duration_ms': metrics.total_duration_ms,
            'source_count': metrics.source_count,
            'transformation_count': len(configuration.transformations),
        })
        return CompilationResult(rules=rules, metrics=metrics)


def compile_filter_list(
    configuration: Union[Configuration, Dict[str, Any]],
    settings: Optional[CompilerSettings] = None,
    fetcher: Optional[ContentFetcher] = None,
) -> List[str]:
    """同步入口"""
    compiler = FilterCompiler(settings=settings, fetcher=fetcher)
    try:
        return asyncio.run(compiler.compile(configuration))
    finally:
        compiler.close()
