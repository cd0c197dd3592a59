# -*- coding: utf-8 -*-
"""压缩：hosts 规则和裸域名转为 ||域名^，并删除被父域名覆盖的规则"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from ..config import TransformationType
from ..rules import RuleKind, classify, is_just_domain
from .base import Transformation, TransformationContext

logger = logging.getLogger(__name__)


@dataclass
class BlocklistRecord:
    rule_text: str
    original_rule_text: str
    can_compress: bool
    hostname: Optional[str] = None


def to_blocklist_records(text: str) -> List[BlocklistRecord]:
    """一行文本 -> 一个或多个记录（hosts 规则每个主机名一条）"""
    rule = classify(text)

    if rule.kind is RuleKind.HOST:
        return [
            BlocklistRecord(rule_text=f"||{hostname}^", original_rule_text=text,
                            can_compress=True, hostname=hostname)
            for hostname in rule.hostnames
        ]

    if rule.kind is RuleKind.NETWORK:
        if is_just_domain(text):
            return [BlocklistRecord(rule_text=f"||{text}^", original_rule_text=text,
                                    can_compress=True, hostname=text)]
        if rule.hostname and not rule.is_exception and not rule.modifiers:
            return [BlocklistRecord(rule_text=text, original_rule_text=text,
                                    can_compress=True, hostname=rule.hostname)]

    return [BlocklistRecord(rule_text=text, original_rule_text=text, can_compress=False)]


def parent_domains(hostname: str) -> Iterator[str]:
    """a.b.c -> b.c, c"""
    parts = hostname.split('.')
    for idx in range(1, len(parts)):
        yield '.'.join(parts[idx:])


class CompressTransformation(Transformation):
    type = TransformationType.COMPRESS

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        seen: Set[str] = set()
        records: List[BlocklistRecord] = []

        for text in rules:
            for record in to_blocklist_records(text):
                if record.can_compress:
                    key = record.hostname.lower()
                    if key in seen:
                        continue
                    seen.add(key)
                records.append(record)

        result = []
        redundant = 0
        for record in records:
            if record.can_compress and any(parent in seen for parent in parent_domains(record.hostname.lower())):
                redundant += 1
                logger.debug(f"父域名已覆盖，删除: {record.original_rule_text}")
                continue
            result.append(record.rule_text)

        logger.debug(f"压缩完成: {len(rules)} -> {len(result)}，冗余 {redundant} 条")
        return result
