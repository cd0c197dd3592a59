# -*- coding: utf-8 -*-
"""去重：保留首次出现的规则，重复规则前的注释一并删除"""

import logging
from typing import List, Optional

from pybloom_live import ScalableBloomFilter

from ..config import TransformationType
from ..rules import is_comment, is_empty
from .base import Transformation, TransformationContext

logger = logging.getLogger(__name__)


class SeenRules:
    """布隆过滤器预筛 + 精确集合确认"""

    def __init__(self, capacity: int = 1000, error_rate: float = 0.001):
        self.bloom = ScalableBloomFilter(
            initial_capacity=max(capacity, 1000),
            error_rate=error_rate,
            mode=ScalableBloomFilter.SMALL_SET_GROWTH
        )
        self.exact = set()
        self.false_positives = 0

    def __contains__(self, item: str) -> bool:
        if item not in self.bloom:
            return False
        if item in self.exact:
            return True
        self.false_positives += 1
        return False

    def add(self, item: str) -> None:
        self.bloom.add(item)
        self.exact.add(item)

    def __len__(self) -> int:
        return len(self.exact)


def _is_filler(text: str) -> bool:
    return is_comment(text) or is_empty(text)


class DeduplicateTransformation(Transformation):
    type = TransformationType.DEDUPLICATE

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        if not rules:
            return []

        # 每个位置之后第一条非注释规则的下标
        next_rule = [-1] * len(rules)
        upcoming = -1
        for idx in range(len(rules) - 1, -1, -1):
            next_rule[idx] = upcoming
            if not _is_filler(rules[idx]):
                upcoming = idx

        seen = SeenRules(capacity=len(rules))
        result = []
        for idx, text in enumerate(rules):
            if _is_filler(text):
                target = next_rule[idx]
                if target != -1 and rules[target] in seen:
                    logger.debug(f"删除重复规则前的注释: {text}")
                    continue
                result.append(text)
                continue

            if text in seen:
                logger.debug(f"删除重复规则: {text}")
                continue
            seen.add(text)
            result.append(text)

        if seen.false_positives:
            logger.debug(f"布隆过滤器误判 {seen.false_positives} 次")
        return result
