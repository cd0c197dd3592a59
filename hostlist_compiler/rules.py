# -*- coding: utf-8 -*-
"""规则分类与解析

把一行文本归为: 注释、空行、hosts 规则、网络规则或无效规则。
网络规则拆分为 例外标记 / 模式 / 修饰符，并可原样重建。
"""

import re
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import idna

from .errors import RuleParseError
from .wildcard import is_regex_pattern

logger = logging.getLogger(__name__)

EXCEPTION_PREFIX = '@@'
MODIFIERS_SEPARATOR = '$'
MODIFIERS_DELIMITER = ','
ESCAPE_CHARACTER = '\\'

ETC_HOSTS_REGEX = re.compile(r'^([a-f0-9.:\]\[]+)(%[a-z0-9]+)?\s+([^#]+)(#.*)?$')
DOMAIN_REGEX = re.compile(
    r'^(?=.{1,255}$)[0-9A-Za-z](?:(?:[0-9A-Za-z]|-){0,61}[0-9A-Za-z])?'
    r'(?:\.[0-9A-Za-z](?:(?:[0-9A-Za-z]|-){0,61}[0-9A-Za-z])?)*\.?$'
)
DOMAIN_PATTERN_REGEX = re.compile(r'^\|\|([a-z0-9-.]+)\^$', re.IGNORECASE)
PUNYCODE_TOKEN_REGEX = re.compile(r'(\*\.|)([^\s^$|=]+(?:\.[^\s^$|=]+)+)')
NON_ASCII_REGEX = re.compile(r'[^\x00-\x7F]')

COSMETIC_MARKERS = ('##', '#@#', '#?#', '#$#', '#%#')


class RuleKind(Enum):
    """规则类别"""
    EMPTY = "empty"
    COMMENT = "comment"
    HOST = "host"
    NETWORK = "network"
    INVALID = "invalid"


@dataclass(frozen=True)
class Modifier:
    """网络规则修饰符，value 为 None 表示无值"""
    name: str
    value: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name}={self.value}" if self.value is not None else self.name


@dataclass(frozen=True)
class Rule:
    """解析后的规则，不可变"""
    text: str
    kind: RuleKind
    hostnames: Tuple[str, ...] = ()
    pattern: Optional[str] = None
    is_exception: bool = False
    modifiers: Tuple[Modifier, ...] = ()
    hostname: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_comment(self) -> bool:
        return self.kind is RuleKind.COMMENT

    @property
    def is_empty(self) -> bool:
        return self.kind is RuleKind.EMPTY

    @property
    def is_host(self) -> bool:
        return self.kind is RuleKind.HOST

    @property
    def is_network(self) -> bool:
        return self.kind is RuleKind.NETWORK

    def find_modifier(self, name: str) -> Optional[Modifier]:
        for modifier in self.modifiers:
            if modifier.name == name:
                return modifier
        return None

    def without_modifiers(self, names: Iterable[str]) -> "Rule":
        """移除指定修饰符后的新规则"""
        drop = set(names)
        kept = tuple(m for m in self.modifiers if m.name not in drop)
        if len(kept) == len(self.modifiers):
            return self
        return replace(self, modifiers=kept)

    def to_string(self) -> str:
        """重建规则文本；非网络规则返回原文"""
        if self.kind is not RuleKind.NETWORK:
            return self.text
        text = EXCEPTION_PREFIX if self.is_exception else ''
        text += self.pattern or ''
        if self.modifiers:
            text += MODIFIERS_SEPARATOR + MODIFIERS_DELIMITER.join(str(m) for m in self.modifiers)
        return text

    def __str__(self) -> str:
        return self.to_string()


# ---------- 行级判断 ----------

def is_comment(text: str) -> bool:
    """以 ! 开头，或 "# " 开头，或恰为 "#"，或以 #### 开头"""
    return (
        text.startswith('!')
        or text.startswith('# ')
        or text == '#'
        or text.startswith('####')
    )


def is_empty(text: str) -> bool:
    return not text.strip()


def is_etc_hosts_rule(text: str) -> bool:
    return ETC_HOSTS_REGEX.match(text.strip()) is not None


def is_just_domain(text: str) -> bool:
    """裸域名，至少包含一个点"""
    return '.' in text and DOMAIN_REGEX.match(text) is not None


def is_allow_rule(text: str) -> bool:
    return text.strip().startswith(EXCEPTION_PREFIX)


def is_cosmetic_rule(text: str) -> bool:
    return any(marker in text for marker in COSMETIC_MARKERS)


def contains_non_ascii(text: str) -> bool:
    return NON_ASCII_REGEX.search(text) is not None


# ---------- 解析 ----------

def split_by_delimiter_with_escape(
    text: str,
    delimiter: str = MODIFIERS_DELIMITER,
    escape: str = ESCAPE_CHARACTER,
    preserve_all_tokens: bool = False,
) -> List[str]:
    """按分隔符切分，被转义的分隔符不作为切分点

    转义字符保留在结果中，以便规则可以原样重建。
    preserve_all_tokens 为 False 时丢弃空片段。
    """
    parts: List[str] = []
    if not text:
        return parts

    buffer: List[str] = []
    for idx, char in enumerate(text):
        if char == delimiter and not (idx > 0 and text[idx - 1] == escape):
            token = ''.join(buffer)
            if token or preserve_all_tokens:
                parts.append(token)
            buffer = []
        else:
            buffer.append(char)

    token = ''.join(buffer)
    if token or preserve_all_tokens:
        parts.append(token)
    return parts


def parse_host_rule(text: str) -> Tuple[str, ...]:
    """hosts 规则 -> 主机名元组；没有主机名时抛出 RuleParseError"""
    rule = text.strip()
    comment_index = rule.find('#')
    if comment_index > 0:
        rule = rule[:comment_index]

    tokens = rule.strip().split()
    hostnames = tuple(tokens[1:])
    if not hostnames:
        raise RuleParseError(f"hosts 规则缺少主机名: {text}")
    return hostnames


def extract_hostname(pattern: Optional[str]) -> Optional[str]:
    """仅当模式恰为 ||主机名^ 时返回主机名"""
    if not pattern:
        return None
    match = DOMAIN_PATTERN_REGEX.match(pattern)
    return match.group(1) if match else None


def parse_modifiers(options: str) -> Tuple[Modifier, ...]:
    modifiers = []
    for option in split_by_delimiter_with_escape(options):
        name, sep, value = option.partition('=')
        modifiers.append(Modifier(name=name, value=value if sep else None))
    return tuple(modifiers)


def parse_network_rule(text: str) -> Rule:
    """解析网络规则；@@ 后为空时抛出 RuleParseError"""
    rule_text = text.strip()
    start = 0
    is_exception = False
    if rule_text.startswith(EXCEPTION_PREFIX):
        is_exception = True
        start = len(EXCEPTION_PREFIX)

    if len(rule_text) <= start:
        raise RuleParseError(f"规则不能为空: {text}")

    pattern = rule_text[start:]
    modifiers: Tuple[Modifier, ...] = ()

    # 正则规则中的 $ 属于正则本身，replace= 除外
    if not (is_regex_pattern(pattern) and 'replace=' not in pattern):
        for idx in range(len(rule_text) - 1, start - 1, -1):
            if rule_text[idx] != MODIFIERS_SEPARATOR:
                continue
            if idx > start and rule_text[idx - 1] == ESCAPE_CHARACTER:
                continue
            pattern = rule_text[start:idx]
            modifiers = parse_modifiers(rule_text[idx + 1:])
            break

    return Rule(
        text=text,
        kind=RuleKind.NETWORK,
        pattern=pattern,
        is_exception=is_exception,
        modifiers=modifiers,
        hostname=extract_hostname(pattern),
    )


def classify(text: str) -> Rule:
    """分类单行文本，解析失败返回 INVALID 而不抛出异常"""
    if is_comment(text):
        return Rule(text=text, kind=RuleKind.COMMENT)
    if is_empty(text):
        return Rule(text=text, kind=RuleKind.EMPTY)

    try:
        if is_etc_hosts_rule(text):
            return Rule(text=text, kind=RuleKind.HOST, hostnames=parse_host_rule(text))
        return parse_network_rule(text)
    except RuleParseError as e:
        logger.debug(f"无法解析规则 {text!r}: {e}")
        return Rule(text=text, kind=RuleKind.INVALID, error=str(e))


def rule_to_string(rule: Rule) -> str:
    return rule.to_string()


# ---------- 国际化域名 ----------

def _to_ascii(domain: str) -> str:
    try:
        return idna.encode(domain, uts46=True).decode('ascii')
    except idna.IDNAError as e:
        logger.debug(f"无法转换为 punycode {domain}: {e}")
        return domain


def convert_non_ascii_to_punycode(line: str) -> str:
    """把行内含非 ASCII 字符的域名转换为 punycode，*. 前缀保留"""
    if not contains_non_ascii(line):
        return line

    def _convert(match: 're.Match') -> str:
        prefix, domain = match.group(1), match.group(2)
        if not contains_non_ascii(domain):
            return match.group(0)
        return prefix + _to_ascii(domain)

    return PUNYCODE_TOKEN_REGEX.sub(_convert, line)
