# -*- coding: utf-8 -*-
"""主机名解析：IP 字面量识别与公共后缀查询"""

import re
import logging
import ipaddress
from dataclasses import dataclass
from typing import Optional

import tldextract

logger = logging.getLogger(__name__)

MAX_HOSTNAME_LENGTH = 253
MAX_LABEL_LENGTH = 63
_LABEL_REGEX = re.compile(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$')

# 只使用随包附带的公共后缀快照，不联网
_EXTRACTOR = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)


@dataclass(frozen=True)
class ParsedHost:
    """主机名解析结果，hostname 为 None 表示无法解析"""
    hostname: Optional[str] = None
    is_ip: bool = False
    public_suffix: Optional[str] = None
    domain: Optional[str] = None


def is_ip(value: str) -> bool:
    candidate = value.strip()
    if candidate.startswith('[') and candidate.endswith(']'):
        candidate = candidate[1:-1]
    try:
        ipaddress.ip_address(candidate)
        return True
    except ValueError:
        return False


def is_valid_hostname(hostname: str) -> bool:
    if not hostname or len(hostname) > MAX_HOSTNAME_LENGTH:
        return False
    for label in hostname.split('.'):
        if not label or len(label) > MAX_LABEL_LENGTH:
            return False
        if not _LABEL_REGEX.match(label):
            return False
    return True


def get_public_suffix(hostname: str) -> Optional[str]:
    """公共后缀；快照中找不到时退回最后一个标签"""
    if not hostname:
        return None
    suffix = _EXTRACTOR(hostname).suffix
    if suffix:
        return suffix
    return hostname.rsplit('.', 1)[-1] or None


def parse_hostname(value: str) -> ParsedHost:
    normalized = value.strip().lower()
    if normalized.endswith('.'):
        normalized = normalized[:-1]
    if not normalized:
        return ParsedHost()

    if is_ip(normalized):
        return ParsedHost(hostname=normalized, is_ip=True)

    if not is_valid_hostname(normalized):
        return ParsedHost()

    extracted = _EXTRACTOR(normalized)
    suffix = extracted.suffix or normalized.rsplit('.', 1)[-1]
    domain = f"{extracted.domain}.{suffix}" if extracted.suffix and extracted.domain else None
    return ParsedHost(hostname=normalized, public_suffix=suffix, domain=domain)
