# -*- coding: utf-8 -*-
from .base import Transformation, TransformationContext
from .basic import (
    ConvertToAsciiTransformation,
    InsertFinalNewLineTransformation,
    InvertAllowTransformation,
    RemoveCommentsTransformation,
    RemoveEmptyLinesTransformation,
    RemoveModifiersTransformation,
    TrimLinesTransformation,
)
from .compress import CompressTransformation
from .deduplicate import DeduplicateTransformation
from .validate import (
    RuleValidator,
    ValidateAllowIpTransformation,
    ValidateTransformation,
    ValidationError,
    ValidationErrorType,
    ValidationReport,
)
from .pipeline import (
    CANONICAL_ORDER,
    TransformationPipeline,
    create_registry,
    exclude_rules,
    include_rules,
    ordered_transformations,
    prepare_wildcards,
)
