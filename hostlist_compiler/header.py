# -*- coding: utf-8 -*-
"""列表头、源头、校验和，以及上游元数据头的清理"""

import base64
import hashlib
from datetime import datetime, timezone
from typing import List, Optional

from .config import PACKAGE_NAME, VERSION, Configuration, Source

CHECKSUM_PREFIX = '! Checksum:'
COMPILED_BY_PREFIX = '! Compiled by '
CHECKSUM_LENGTH = 27

METADATA_HEADER_PREFIXES = (
    '! Title:',
    '! Description:',
    '! Homepage:',
    '! License:',
    '! Version:',
    '! Last modified:',
    '! Expires:',
    '! TimeUpdated:',
    CHECKSUM_PREFIX,
    COMPILED_BY_PREFIX,
    '! Diff-Path:',
    '! Diff-Expires:',
)


def _iso_timestamp(timestamp: Optional[datetime]) -> str:
    ts = timestamp or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f"{ts.microsecond // 1000:03d}Z"


def generate_list_header(configuration: Configuration, timestamp: Optional[datetime] = None) -> List[str]:
    lines = ['!', f'! Title: {configuration.name}']
    if configuration.description:
        lines.append(f'! Description: {configuration.description}')
    if configuration.version:
        lines.append(f'! Version: {configuration.version}')
    if configuration.homepage:
        lines.append(f'! Homepage: {configuration.homepage}')
    if configuration.license:
        lines.append(f'! License: {configuration.license}')
    lines.append(f'! Last modified: {_iso_timestamp(timestamp)}')
    lines.append('!')
    lines.append(f'{COMPILED_BY_PREFIX}{PACKAGE_NAME} v{VERSION}')
    lines.append('!')
    return lines


def generate_source_header(source: Source) -> List[str]:
    lines = ['!']
    if source.name:
        lines.append(f'! Source name: {source.name}')
    lines.append(f'! Source: {source.source}')
    lines.append('!')
    return lines


def calculate_checksum(lines: List[str]) -> str:
    """SHA-256 的 base64 编码，截取前 27 个字符；已有的校验和行不参与计算"""
    content = '\n'.join(line for line in lines if not line.startswith(CHECKSUM_PREFIX))
    digest = hashlib.sha256(content.encode('utf-8')).digest()
    return base64.b64encode(digest).decode('ascii')[:CHECKSUM_LENGTH]


def add_checksum_to_header(lines: List[str]) -> List[str]:
    """在 "Compiled by" 之前插入校验和行"""
    checksum_line = f'{CHECKSUM_PREFIX} {calculate_checksum(lines)}'

    compiled_by = next((i for i, line in enumerate(lines) if line.startswith(COMPILED_BY_PREFIX)), -1)
    if compiled_by == -1:
        first_rule = next(
            (i for i, line in enumerate(lines) if line.strip() and not line.startswith('!')),
            len(lines),
        )
        return lines[:first_rule] + [checksum_line] + lines[first_rule:]

    insert_at = compiled_by
    if compiled_by > 0 and lines[compiled_by - 1] == '!':
        insert_at = compiled_by - 1
    return lines[:insert_at] + [checksum_line] + lines[insert_at:]


def _is_metadata_header(line: str) -> bool:
    return line.strip().startswith(METADATA_HEADER_PREFIXES)


def strip_upstream_headers(lines: List[str]) -> List[str]:
    """去掉上游列表自带的 Title、Checksum 等元数据行

    头部区域内连续的 "!" 只保留一个，结果开头的 "!" 全部去掉。
    """
    result: List[str] = []
    in_header = True
    empty_markers = 0

    for line in lines:
        trimmed = line.strip()
        if _is_metadata_header(line):
            continue

        if trimmed == '!' and in_header:
            empty_markers += 1
            if empty_markers > 1:
                continue
            result.append(line)
            continue

        if trimmed and not trimmed.startswith('!'):
            in_header = False
            empty_markers = 0
        elif trimmed.startswith('!') and trimmed != '!':
            empty_markers = 0
        result.append(line)

    leading = 0
    while leading < len(result) and result[leading].strip() == '!':
        leading += 1
    return result[leading:]
