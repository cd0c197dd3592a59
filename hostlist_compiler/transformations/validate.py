# -*- coding: utf-8 -*-
"""规则校验

保留 DNS 拦截器能够处理的规则，删除其余规则，
以及紧挨在被删规则之前的注释和空行。
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..config import TransformationType
from ..rules import RuleKind, classify, is_comment, is_cosmetic_rule, is_empty
from ..tld import parse_hostname
from ..wildcard import is_regex_pattern
from .base import Transformation, TransformationContext

logger = logging.getLogger(__name__)

SUPPORTED_MODIFIERS = frozenset({
    'important', '~important', 'ctag', 'dnstype', 'dnsrewrite', 'denyallow', 'badfilter', 'client',
})
# 带有这些修饰符时允许匹配整个公共后缀
LIMITING_MODIFIERS = frozenset({'denyallow', 'badfilter', 'client'})

MIN_PATTERN_LENGTH = 5
_PATTERN_CHARS = re.compile(r'^[a-zA-Z0-9\-.*|^]+$')


class ValidationErrorType(Enum):
    PARSE_ERROR = "parse_error"
    UNSUPPORTED_MODIFIER = "unsupported_modifier"
    INVALID_HOSTNAME = "invalid_hostname"
    IP_NOT_ALLOWED = "ip_not_allowed"
    PATTERN_TOO_SHORT = "pattern_too_short"
    PUBLIC_SUFFIX_MATCH = "public_suffix_match"
    INVALID_CHARACTERS = "invalid_characters"
    COSMETIC_NOT_SUPPORTED = "cosmetic_not_supported"
    SYNTAX_ERROR = "syntax_error"


class ValidationSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationError:
    type: ValidationErrorType
    rule_text: str
    message: str
    severity: ValidationSeverity = ValidationSeverity.ERROR
    line_number: Optional[int] = None
    source_name: Optional[str] = None


@dataclass
class ValidationReport:
    """一次校验的统计与错误明细"""
    errors: List[ValidationError] = field(default_factory=list)
    total_rules: int = 0
    valid_rules: int = 0
    invalid_rules: int = 0

    @property
    def error_count(self) -> int:
        return sum(1 for e in self.errors if e.severity is ValidationSeverity.ERROR)

    def by_type(self) -> Dict[ValidationErrorType, int]:
        counts: Dict[ValidationErrorType, int] = {}
        for error in self.errors:
            counts[error.type] = counts.get(error.type, 0) + 1
        return counts


Failure = Optional[Tuple[ValidationErrorType, str]]


class RuleValidator:
    """单条规则校验，返回 None 表示有效"""

    def __init__(self, allow_ip: bool = False):
        self.allow_ip = allow_ip

    def check(self, text: str) -> Failure:
        if is_comment(text) or is_empty(text):
            return None
        rule = classify(text)
        # hosts 规则的行内注释可以包含 ##
        if rule.kind is RuleKind.HOST:
            for hostname in rule.hostnames:
                failure = self._check_hostname(hostname, limited=False)
                if failure:
                    return failure
            return None

        if is_cosmetic_rule(text):
            return ValidationErrorType.COSMETIC_NOT_SUPPORTED, "不支持元素隐藏规则"
        if rule.kind is RuleKind.INVALID:
            return ValidationErrorType.PARSE_ERROR, rule.error or "无法解析"
        return self._check_network(rule)

    def _check_hostname(self, hostname: str, limited: bool) -> Failure:
        parsed = parse_hostname(hostname)
        if not parsed.hostname:
            return ValidationErrorType.INVALID_HOSTNAME, f"无效的主机名: {hostname}"
        if parsed.is_ip:
            if not self.allow_ip:
                return ValidationErrorType.IP_NOT_ALLOWED, f"不允许IP地址: {hostname}"
            return None
        if parsed.hostname == parsed.public_suffix and not limited:
            return ValidationErrorType.PUBLIC_SUFFIX_MATCH, f"匹配整个公共后缀: {hostname}"
        return None

    def _check_network(self, rule) -> Failure:
        limited = False
        for modifier in rule.modifiers:
            if modifier.name not in SUPPORTED_MODIFIERS:
                return ValidationErrorType.UNSUPPORTED_MODIFIER, f"不支持的修饰符: {modifier.name}"
            if modifier.name in LIMITING_MODIFIERS:
                limited = True

        pattern = rule.pattern or ''
        if is_regex_pattern(pattern):
            return None
        if len(pattern) < MIN_PATTERN_LENGTH:
            return ValidationErrorType.PATTERN_TOO_SHORT, f"模式过短: {pattern}"

        to_test = pattern[3:] if pattern.startswith('://') else pattern
        if not _PATTERN_CHARS.match(to_test):
            return ValidationErrorType.INVALID_CHARACTERS, f"模式包含无效字符: {pattern}"

        separator = pattern.find('^')
        if separator != -1 and '*' in pattern[separator + 1:]:
            return ValidationErrorType.SYNTAX_ERROR, f"分隔符之后不能出现通配符: {pattern}"

        if not pattern.startswith('||') or separator == -1:
            return None

        if len(pattern) > separator + 1 and pattern[separator + 1] != '|':
            return ValidationErrorType.SYNTAX_ERROR, f"分隔符之后只允许 |: {pattern}"

        domain = pattern[2:separator]
        # 含通配符的域名（包括 *.公共后缀）不做主机名校验
        if '*' in domain:
            return None
        return self._check_hostname(domain, limited)

    def is_valid(self, text: str) -> bool:
        return self.check(text) is None


class ValidateTransformation(Transformation):
    """删除无效规则及其前面的注释和空行"""

    type = TransformationType.VALIDATE

    def __init__(self, allow_ip: bool = False):
        self.validator = RuleValidator(allow_ip=allow_ip)
        self.last_report: Optional[ValidationReport] = None

    async def execute(self, rules: List[str], context: Optional[TransformationContext] = None) -> List[str]:
        source_name = context.source_name if context else None
        report = ValidationReport(total_rules=len(rules))
        keep = [True] * len(rules)
        previous_removed = False

        for idx in range(len(rules) - 1, -1, -1):
            text = rules[idx]
            failure = self.validator.check(text)
            if failure:
                error_type, message = failure
                keep[idx] = False
                previous_removed = True
                report.errors.append(ValidationError(
                    type=error_type,
                    rule_text=text,
                    message=message,
                    line_number=idx + 1,
                    source_name=source_name,
                ))
                logger.debug(f"删除无效规则: {text} ({message})")
            elif previous_removed and (is_comment(text) or is_empty(text)):
                keep[idx] = False
                logger.debug(f"删除无效规则前的注释: {text}")
            else:
                previous_removed = False

        report.errors.reverse()
        report.invalid_rules = len(report.errors)
        report.valid_rules = report.total_rules - report.invalid_rules
        self.last_report = report

        return [text for text, kept in zip(rules, keep) if kept]


class ValidateAllowIpTransformation(ValidateTransformation):
    type = TransformationType.VALIDATE_ALLOW_IP

    def __init__(self):
        super().__init__(allow_ip=True)
