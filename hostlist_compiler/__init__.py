# -*- coding: utf-8 -*-
"""hosts / adblock 规则编译器"""

from .config import VERSION as __version__
from .config import CompilerSettings, Configuration, Source, SourceType, TransformationType, load_configuration
from .errors import CompilerError, ConfigurationError, FetchError, RuleParseError, WildcardError
from .events import CompilerEvents, EventEmitter
from .wildcard import Wildcard, compile_wildcard
from .rules import Rule, RuleKind, classify
from .directives import DirectiveResolver, evaluate_condition
from .fetchers import (
    CompositeFetcher,
    ContentFetcher,
    FileFetcher,
    HttpFetcher,
    PreFetchedContentFetcher,
    create_default_fetcher,
)
from .transformations import TransformationPipeline
from .compiler import CompilationResult, FilterCompiler, SourceCompiler, compile_filter_list
