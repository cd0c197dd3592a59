# -*- coding: utf-8 -*-
"""编译器配置：运行参数、过滤列表配置模型与加载"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PACKAGE_NAME = "hostlist-compiler"
VERSION = "1.0.0"

DEFAULT_USER_AGENT = f"{PACKAGE_NAME}/{VERSION} (+python-requests)"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class TransformationType(Enum):
    """转换类型，取值与配置文件中的名称一致"""
    CONVERT_TO_ASCII = "ConvertToAscii"
    TRIM_LINES = "TrimLines"
    REMOVE_COMMENTS = "RemoveComments"
    COMPRESS = "Compress"
    REMOVE_MODIFIERS = "RemoveModifiers"
    INVERT_ALLOW = "InvertAllow"
    VALIDATE = "Validate"
    VALIDATE_ALLOW_IP = "ValidateAllowIp"
    DEDUPLICATE = "Deduplicate"
    REMOVE_EMPTY_LINES = "RemoveEmptyLines"
    INSERT_FINAL_NEW_LINE = "InsertFinalNewLine"

    @classmethod
    def parse(cls, value: Union[str, "TransformationType"]) -> Optional["TransformationType"]:
        """名称转枚举，未知名称返回None"""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        return None


class SourceType(Enum):
    """源格式"""
    ADBLOCK = "adblock"
    HOSTS = "hosts"


@dataclass
class CompilerSettings:
    """运行参数，环境变量优先"""
    max_include_depth: int = 10
    http_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    http_pool_size: int = 10
    max_workers: int = 6
    target_platform: Optional[str] = None
    log_level: str = "INFO"
    allow_empty_response: bool = True
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        """从环境变量初始化配置"""
        self.max_include_depth = int(os.getenv("MAX_INCLUDE_DEPTH", self.max_include_depth))
        self.http_timeout = float(os.getenv("HTTP_TIMEOUT", self.http_timeout))
        self.max_retries = int(os.getenv("MAX_RETRIES", self.max_retries))
        self.retry_delay = float(os.getenv("RETRY_DELAY", self.retry_delay))
        self.http_pool_size = int(os.getenv("HTTP_POOL_SIZE", self.http_pool_size))
        self.max_workers = int(os.getenv("MAX_WORKERS", self.max_workers))
        self.target_platform = os.getenv("TARGET_PLATFORM", self.target_platform) or None
        self.log_level = os.getenv("LOG_LEVEL", self.log_level).upper()
        self.allow_empty_response = _env_bool("ALLOW_EMPTY_RESPONSE", self.allow_empty_response)
        self.user_agent = os.getenv("USER_AGENT", self.user_agent)

        if self.max_include_depth < 0:
            raise ConfigurationError("MAX_INCLUDE_DEPTH 不能为负数")
        if self.max_retries < 0:
            raise ConfigurationError("MAX_RETRIES 不能为负数")


_LIST_FIELDS = ("transformations", "exclusions", "exclusions_sources", "inclusions", "inclusions_sources")


def _camel(key: str) -> str:
    """exclusions_sources -> exclusionsSources"""
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _read_list(data: Dict[str, Any], key: str, errors: List[str], prefix: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        errors.append(f"{prefix}{key} 必须是字符串数组")
        return []
    return list(value)


def _read_str(data: Dict[str, Any], key: str, errors: List[str], prefix: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f"{prefix}{key} 必须是字符串")
        return None
    return value


@dataclass
class Source:
    """单个过滤源"""
    source: str
    name: Optional[str] = None
    type: SourceType = SourceType.ADBLOCK
    transformations: List[str] = field(default_factory=list)
    exclusions: List[str] = field(default_factory=list)
    exclusions_sources: List[str] = field(default_factory=list)
    inclusions: List[str] = field(default_factory=list)
    inclusions_sources: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, errors: List[str], index: int = 0) -> Optional["Source"]:
        prefix = f"sources[{index}]."
        if not isinstance(data, dict):
            errors.append(f"sources[{index}] 必须是对象")
            return None

        source = data.get("source")
        if not isinstance(source, str) or not source.strip():
            errors.append(f"{prefix}source 不能为空")
            return None

        source_type = SourceType.ADBLOCK
        raw_type = data.get("type")
        if raw_type is not None:
            try:
                source_type = SourceType(raw_type)
            except ValueError:
                errors.append(f"{prefix}type 未知: {raw_type}")

        lists = {key: _read_list(data, _camel(key), errors, prefix) for key in _LIST_FIELDS}
        return cls(
            source=source.strip(),
            name=_read_str(data, "name", errors, prefix),
            type=source_type,
            **lists
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"source": self.source, "type": self.type.value}
        if self.name:
            result["name"] = self.name
        for key in _LIST_FIELDS:
            values = getattr(self, key)
            if values:
                result[_camel(key)] = list(values)
        return result


@dataclass
class Configuration:
    """过滤列表编译配置"""
    name: str
    sources: List[Source]
    description: Optional[str] = None
    homepage: Optional[str] = None
    license: Optional[str] = None
    version: Optional[str] = None
    transformations: List[str] = field(default_factory=list)
    exclusions: List[str] = field(default_factory=list)
    exclusions_sources: List[str] = field(default_factory=list)
    inclusions: List[str] = field(default_factory=list)
    inclusions_sources: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Configuration":
        """校验并构建配置，所有问题一次性报告"""
        if not isinstance(data, dict):
            raise ConfigurationError("配置必须是JSON对象")

        errors: List[str] = []
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("name 不能为空")

        raw_sources = data.get("sources")
        sources: List[Source] = []
        if not isinstance(raw_sources, list) or not raw_sources:
            errors.append("sources 必须是非空数组")
        else:
            for idx, item in enumerate(raw_sources):
                src = Source.from_dict(item, errors, idx)
                if src is not None:
                    sources.append(src)

        meta = {key: _read_str(data, key, errors, "") for key in ("description", "homepage", "license", "version")}
        lists = {key: _read_list(data, _camel(key), errors, "") for key in _LIST_FIELDS}

        if errors:
            raise ConfigurationError("配置无效", errors)

        for item in lists["transformations"] + [t for s in sources for t in s.transformations]:
            if TransformationType.parse(item) is None:
                logger.warning(f"未知的转换类型将被忽略: {item}")

        return cls(name=name.strip(), sources=sources, **meta, **lists)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "sources": [s.to_dict() for s in self.sources]}
        for key in ("description", "homepage", "license", "version"):
            value = getattr(self, key)
            if value:
                result[key] = value
        for key in _LIST_FIELDS:
            values = getattr(self, key)
            if values:
                result[_camel(key)] = list(values)
        return result


def load_configuration(path: Union[str, Path]) -> Configuration:
    """从JSON文件加载配置"""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"配置文件不存在: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"配置文件不是有效的JSON: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"读取配置文件失败 {config_path}: {e}") from e

    logger.debug(f"已加载配置文件: {config_path}")
    return Configuration.from_dict(data)
