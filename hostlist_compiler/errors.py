# -*- coding: utf-8 -*-
"""编译器异常定义"""

from typing import List, Optional


class CompilerError(Exception):
    """编译器基础异常"""


class ConfigurationError(CompilerError):
    """配置文件格式或取值错误"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class FetchError(CompilerError):
    """获取源内容失败，附带出错的源标识"""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"获取源失败 {source}: {message}")


class WildcardError(CompilerError, ValueError):
    """通配符模式无法编译"""


class RuleParseError(CompilerError, ValueError):
    """规则文本无法解析"""
