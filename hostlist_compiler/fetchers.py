# -*- coding: utf-8 -*-
"""内容获取：HTTP、本地文件、预取内容及其组合"""

import re
import time
import random
import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

import aiofiles
import chardet
import requests

from .config import CompilerSettings
from .errors import FetchError

logger = logging.getLogger(__name__)

HEADERS = {
    'Accept': 'text/plain,text/html;q=0.9,*/*;q=0.8',
    'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8',
    'Accept-Encoding': 'gzip, deflate',
    'Connection': 'keep-alive',
    'Cache-Control': 'no-cache',
}

RETRYABLE_STATUS = frozenset({429})
_WINDOWS_ABSOLUTE = re.compile(r'^[a-zA-Z]:[\\/]')


def is_url(source: str) -> bool:
    return source.startswith('http://') or source.startswith('https://')


def is_absolute_path(path: str) -> bool:
    return path.startswith('/') or _WINDOWS_ABSOLUTE.match(path) is not None


def resolve_include_path(include_path: str, base: str) -> str:
    """相对 base 解析 !#include 路径；绝对路径和 URL 原样返回"""
    if is_absolute_path(include_path) or is_url(include_path):
        return include_path
    if is_url(base):
        return urljoin(base, include_path)

    separator_index = max(base.rfind('/'), base.rfind('\\'))
    if separator_index < 0:
        return include_path
    return base[:separator_index + 1] + include_path


def decode_content(content: bytes) -> str:
    """检测编码并转换为文本，优先按 UTF-8 解码"""
    if not content:
        return ''
    try:
        return content.decode('utf-8-sig')
    except UnicodeDecodeError:
        pass

    detected = chardet.detect(content)
    encoding = detected.get('encoding')
    confidence = detected.get('confidence') or 0
    logger.debug(f"检测到编码 {encoding} (置信度 {confidence:.2f})")

    for enc in (encoding, 'gb18030'):
        if not enc:
            continue
        try:
            return content.decode(enc)
        except (UnicodeDecodeError, LookupError):
            continue

    return content.decode('utf-8', errors='replace')


def split_lines(content: str) -> List[str]:
    """按 \\r?\\n 分行，丢弃末尾的空行"""
    lines = re.split(r'\r?\n', content)
    if lines and lines[-1] == '':
        lines.pop()
    return lines


class ContentFetcher(ABC):
    """内容获取器接口"""

    @abstractmethod
    def can_handle(self, source: str) -> bool:
        ...

    @abstractmethod
    async def fetch(self, source: str) -> str:
        """返回源的完整文本，失败抛出 FetchError"""

    def close(self) -> None:
        pass


class HttpFetcher(ContentFetcher):
    """基于 requests 会话池的 HTTP 获取器，在线程池中执行"""

    def __init__(self, settings: Optional[CompilerSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or CompilerSettings()
        self.session = session or self._init_session()
        self._executor: Optional[ThreadPoolExecutor] = None

    def _init_session(self) -> requests.Session:
        """初始化HTTP会话"""
        session = requests.Session()
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=self.settings.http_pool_size,
            pool_maxsize=self.settings.http_pool_size,
            max_retries=0
        )
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        session.headers.update(HEADERS)
        session.headers['User-Agent'] = self.settings.user_agent
        return session

    def can_handle(self, source: str) -> bool:
        return is_url(source)

    async def fetch(self, source: str) -> str:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.settings.max_workers)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.download_with_retry, source)

    def _backoff(self, attempt: int) -> float:
        delay = self.settings.retry_delay * (2 ** attempt)
        return delay + delay * random.uniform(0, 0.3)

    def download_with_retry(self, url: str) -> str:
        """带重试机制的下载：5xx、429 和网络错误重试，其余 4xx 立即失败"""
        max_retries = self.settings.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = self.session.get(url, timeout=self.settings.http_timeout, allow_redirects=True)
            except requests.exceptions.RequestException as e:
                if attempt >= max_retries:
                    logger.error(f"网络请求失败 {url}: {e}")
                    raise FetchError(url, str(e)) from e
                delay = self._backoff(attempt)
                logger.warning(f"网络请求失败 {url}: {e}，{delay:.1f}秒后第{attempt + 1}次重试")
                time.sleep(delay)
                continue

            status = response.status_code
            if status >= 400:
                retryable = status >= 500 or status in RETRYABLE_STATUS
                if not retryable or attempt >= max_retries:
                    raise FetchError(url, f"HTTP {status}")
                delay = self._backoff(attempt)
                logger.warning(f"HTTP {status} {url}，{delay:.1f}秒后第{attempt + 1}次重试")
                time.sleep(delay)
                continue

            text = decode_content(response.content)
            if not text and not self.settings.allow_empty_response:
                raise FetchError(url, "响应内容为空")
            logger.debug(f"下载完成 {url} ({len(response.content)} 字节)")
            return text

        raise FetchError(url, "超过最大重试次数")

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self.session.close()


class FileFetcher(ContentFetcher):
    """本地文件获取器"""

    def __init__(self, settings: Optional[CompilerSettings] = None):
        self.settings = settings or CompilerSettings()

    def can_handle(self, source: str) -> bool:
        return not is_url(source)

    async def fetch(self, source: str) -> str:
        path = Path(source)
        try:
            async with aiofiles.open(path, 'rb') as f:
                content = await f.read()
        except OSError as e:
            raise FetchError(source, f"读取文件失败: {e}") from e

        text = decode_content(content)
        if not text and not self.settings.allow_empty_response:
            raise FetchError(source, "文件内容为空")
        return text


class PreFetchedContentFetcher(ContentFetcher):
    """从内存映射中返回已获取的内容"""

    def __init__(self, content: Dict[str, str]):
        self._content = dict(content)

    def can_handle(self, source: str) -> bool:
        return source in self._content

    async def fetch(self, source: str) -> str:
        try:
            return self._content[source]
        except KeyError:
            raise FetchError(source, "没有预取的内容") from None


class CompositeFetcher(ContentFetcher):
    """依次尝试多个获取器，交给第一个能处理的"""

    def __init__(self, fetchers: Iterable[ContentFetcher]):
        self.fetchers = list(fetchers)

    def can_handle(self, source: str) -> bool:
        return any(f.can_handle(source) for f in self.fetchers)

    async def fetch(self, source: str) -> str:
        for fetcher in self.fetchers:
            if fetcher.can_handle(source):
                return await fetcher.fetch(source)
        raise FetchError(source, "没有可处理该源的获取器")

    def close(self) -> None:
        for fetcher in self.fetchers:
            fetcher.close()


def create_default_fetcher(settings: Optional[CompilerSettings] = None) -> CompositeFetcher:
    settings = settings or CompilerSettings()
    return CompositeFetcher([HttpFetcher(settings), FileFetcher(settings)])
