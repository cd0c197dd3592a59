# -*- coding: utf-8 -*-
"""命令行入口"""

import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .compiler import FilterCompiler
from .config import VERSION, CompilerSettings, Configuration, Source, SourceType, load_configuration
from .errors import CompilerError
from .log import setup_logger
from .monitor import ResourceMonitor

logger = logging.getLogger(__name__)

# 仅指定 -i 时使用的转换
DEFAULT_INPUT_TRANSFORMATIONS = [
    "RemoveComments",
    "Deduplicate",
    "Compress",
    "Validate",
    "TrimLines",
    "InsertFinalNewLine",
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostlist-compiler",
        description="把多个 hosts / adblock 源编译为一个 DNS 拦截列表",
    )
    parser.add_argument("-c", "--config", help="配置文件路径 (JSON)")
    parser.add_argument("-i", "--input", action="append", default=[],
                        help="要转换的 URL 或本地文件，可重复指定")
    parser.add_argument("-t", "--input-type", choices=[t.value for t in SourceType], default="hosts",
                        help="输入文件类型 (默认: hosts)")
    parser.add_argument("-o", "--output", required=True, help="输出文件路径")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    parser.add_argument("--platform", help="!#if 条件中为真的平台标识符")
    parser.add_argument("--max-depth", type=int, help="!#include 最大嵌套深度")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def config_from_inputs(inputs: List[str], input_type: str) -> Configuration:
    return Configuration(
        name="Blocklist",
        sources=[Source(source=i, type=SourceType(input_type)) for i in inputs],
        transformations=list(DEFAULT_INPUT_TRANSFORMATIONS),
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.config and not args.input:
        parser.error("必须指定配置文件 (-c) 或输入源 (-i)")
    if args.config and args.input:
        parser.error("不能同时指定配置文件 (-c) 和输入源 (-i)")

    settings = CompilerSettings()
    if args.verbose:
        settings.log_level = "DEBUG"
    if args.platform:
        settings.target_platform = args.platform
    if args.max_depth is not None:
        settings.max_include_depth = args.max_depth
    setup_logger(settings.log_level)

    monitor = ResourceMonitor()
    compiler = FilterCompiler(settings=settings)
    try:
        if args.config:
            configuration = load_configuration(args.config)
        else:
            configuration = config_from_inputs(args.input, args.input_type)

        rules = asyncio.run(compiler.compile(configuration))

        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8", newline="\n") as f:
            f.write("\n".join(rules))
        logger.info(f"已写入 {len(rules)} 行到 {output_path}")
    except CompilerError as e:
        logger.error(f"编译失败: {e}")
        return 1
    except OSError as e:
        logger.error(f"文件操作失败: {e}")
        return 1
    finally:
        compiler.close()
        monitor.log_resource_usage()

    return 0
