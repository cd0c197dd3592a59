import pytest

from hostlist_compiler.transformations.base import TransformationContext
from hostlist_compiler.transformations.validate import (
    RuleValidator,
    ValidateAllowIpTransformation,
    ValidateTransformation,
    ValidationErrorType,
)


@pytest.fixture
def validate(run):
    transformation = ValidateTransformation()

    def _validate(rules):
        return run(transformation.execute(rules))
    return _validate


@pytest.mark.parametrize("rule", [
    "||example.org^",
    "||example.org^|",
    "@@||example.org^",
    "||example.org^$important",
    "||example.org^$dnstype=AAAA,client=127.0.0.1",
    "||org^$denyallow=example.org",
    "||*.org^",
    "||*.ga^$denyallow=example.ga",
    "||ex*.org^",
    "0.0.0.0 example.org",
    "0.0.0.0 a.example.org b.example.org",
    "0.0.0.0 ads.example.com ## tracker",
    "0.0.0.0 ads.example.com #$# tracker",
    "/ads\\d+/",
    "/a/",
    "://example.org",
    "example.org",
    "! comment",
    "",
])
def test_valid_rules(rule):
    assert RuleValidator().is_valid(rule)


@pytest.mark.parametrize("rule, error_type", [
    ("||ab^", ValidationErrorType.PUBLIC_SUFFIX_MATCH),
    ("||org^", ValidationErrorType.PUBLIC_SUFFIX_MATCH),
    ("0.0.0.0 org", ValidationErrorType.PUBLIC_SUFFIX_MATCH),
    ("abcd", ValidationErrorType.PATTERN_TOO_SHORT),
    ("||example.org^$third-party", ValidationErrorType.UNSUPPORTED_MODIFIER),
    ("||exa mple.org^", ValidationErrorType.INVALID_CHARACTERS),
    ("||example.org^*", ValidationErrorType.SYNTAX_ERROR),
    ("||example.org^abc", ValidationErrorType.SYNTAX_ERROR),
    ("||*.example.org^*", ValidationErrorType.SYNTAX_ERROR),
    ("exa*mple.org^*", ValidationErrorType.SYNTAX_ERROR),
    ("||*.example.org^abc", ValidationErrorType.SYNTAX_ERROR),
    ("||-bad.org^", ValidationErrorType.INVALID_HOSTNAME),
    ("||bad_host.org^", ValidationErrorType.INVALID_CHARACTERS),
    ("||1.2.3.4^", ValidationErrorType.IP_NOT_ALLOWED),
    ("0.0.0.0 1.2.3.4", ValidationErrorType.IP_NOT_ALLOWED),
    ("example.org##.banner", ValidationErrorType.COSMETIC_NOT_SUPPORTED),
    ("example.org#@#.banner", ValidationErrorType.COSMETIC_NOT_SUPPORTED),
    ("@@", ValidationErrorType.PARSE_ERROR),
])
def test_invalid_rules(rule, error_type):
    failure = RuleValidator().check(rule)
    assert failure is not None
    assert failure[0] is error_type


def test_validation_floor(validate):
    assert validate(["||ab^"]) == []
    assert validate(["||org^"]) == []
    assert validate(["||org^$denyallow=example.org"]) == ["||org^$denyallow=example.org"]


def test_allow_ip_variant(run):
    rules = ["||1.2.3.4^", "0.0.0.0 10.0.0.1", "||example.org^"]
    assert run(ValidateAllowIpTransformation().execute(rules)) == rules
    assert run(ValidateTransformation().execute(rules)) == ["||example.org^"]


def test_invalid_rule_removes_preceding_comments(validate):
    rules = [
        "! keep me",
        "||example.org^",
        "! about the bad rule",
        "",
        "||org^",
        "||example.com^",
        "! trailing",
    ]
    assert validate(rules) == ["! keep me", "||example.org^", "||example.com^", "! trailing"]


def test_cascade_across_consecutive_invalid_rules(validate):
    rules = ["! a", "||org^", "! b", "||com^"]
    assert validate(rules) == []


def test_report_is_recorded(run):
    transformation = ValidateTransformation()
    run(transformation.execute(
        ["||example.org^", "||org^", "||example.org^$popup"],
        TransformationContext(source_name="test source"),
    ))
    report = transformation.last_report
    assert report.total_rules == 3
    assert report.invalid_rules == 2
    assert report.valid_rules == 1
    assert [e.line_number for e in report.errors] == [2, 3]
    assert all(e.source_name == "test source" for e in report.errors)
    assert report.by_type()[ValidationErrorType.UNSUPPORTED_MODIFIER] == 1


def test_hosts_rule_with_hash_comment_is_kept(validate):
    rules = ["! hosts", "0.0.0.0 ads.example.com ## tracker", "example.org##.banner"]
    assert validate(rules) == ["! hosts", "0.0.0.0 ads.example.com ## tracker"]
