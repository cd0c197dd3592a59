import pytest

from hostlist_compiler.directives import DirectiveResolver, evaluate_condition, resolve
from hostlist_compiler.errors import FetchError
from hostlist_compiler.fetchers import PreFetchedContentFetcher


@pytest.mark.parametrize("condition, platform, expected", [
    ("", None, True),
    ("true", None, True),
    ("false", None, False),
    ("!false", None, True),
    ("true && false", None, False),
    ("true || false", None, True),
    ("(false || true) && !false", None, True),
    ("windows", None, False),
    ("!windows", None, True),
    ("windows", "windows", True),
    ("WINDOWS || mac", "mac", True),
    ("adguard_app_windows", "adguard", False),
    ("adguard && !adguard_ext_safari", "adguard", True),
])
def test_evaluate_condition(condition, platform, expected):
    assert evaluate_condition(condition, platform) is expected


@pytest.mark.parametrize("condition", [
    "unknown_platform",
    "windows; import os",
    "true &",
    "(true",
    "true false",
    "true & false",
])
def test_malformed_conditions_are_false(condition):
    assert evaluate_condition(condition) is False


def test_conditional_blocks(run):
    fetcher = PreFetchedContentFetcher({
        "list.txt": "rule1\n!#if false\nrule2\n!#else\nrule3\n!#endif\nrule4\n",
    })
    assert run(resolve("list.txt", fetcher)) == ["rule1", "rule3", "rule4"]


def test_nested_conditionals(run):
    content = "\n".join([
        "a",
        "!#if true",
        "b",
        "!#if false",
        "c",
        "!#else",
        "d",
        "!#endif",
        "e",
        "!#else",
        "f",
        "!#endif",
        "g",
    ])
    fetcher = PreFetchedContentFetcher({"list.txt": content})
    assert run(resolve("list.txt", fetcher)) == ["a", "b", "d", "e", "g"]


def test_platform_selected_branch(run):
    content = "!#if ios\nios-rule\n!#else\nother-rule\n!#endif"
    fetcher = PreFetchedContentFetcher({"list.txt": content})
    assert run(resolve("list.txt", fetcher, target_platform="ios")) == ["ios-rule"]
    assert run(resolve("list.txt", fetcher)) == ["other-rule"]


def test_include_relative_to_parent(run):
    fetcher = PreFetchedContentFetcher({
        "lists/main.txt": "top\n!#include sub/part.txt\nbottom",
        "lists/sub/part.txt": "included1\r\nincluded2\r\n",
    })
    assert run(resolve("lists/main.txt", fetcher)) == ["top", "included1", "included2", "bottom"]


def test_include_relative_url(run):
    fetcher = PreFetchedContentFetcher({
        "https://example.org/filters/main.txt": "!#include extra.txt\nmain",
        "https://example.org/filters/extra.txt": "extra",
    })
    assert run(resolve("https://example.org/filters/main.txt", fetcher)) == ["extra", "main"]


def test_include_cycle_terminates(run):
    fetcher = PreFetchedContentFetcher({
        "a.txt": "!#include b.txt",
        "b.txt": "!#include a.txt",
    })
    assert run(resolve("a.txt", fetcher)) == []


def test_include_cycle_keeps_other_lines(run):
    fetcher = PreFetchedContentFetcher({
        "a.txt": "rule-a\n!#include b.txt",
        "b.txt": "rule-b\n!#include a.txt",
    })
    assert run(resolve("a.txt", fetcher)) == ["rule-a", "rule-b"]


def test_max_depth_stops_inclusion(run):
    content = {f"{i}.txt": f"rule{i}\n!#include {i + 1}.txt" for i in range(5)}
    fetcher = PreFetchedContentFetcher(content)
    assert run(resolve("0.txt", fetcher, max_depth=2)) == ["rule0", "rule1", "rule2"]


def test_failed_include_is_skipped(run):
    fetcher = PreFetchedContentFetcher({"main.txt": "a\n!#include missing.txt\nb"})
    assert run(resolve("main.txt", fetcher)) == ["a", "b"]


def test_top_level_failure_propagates(run):
    fetcher = PreFetchedContentFetcher({})
    with pytest.raises(FetchError) as info:
        run(resolve("missing.txt", fetcher))
    assert info.value.source == "missing.txt"


def test_safari_affinity_block_is_skipped(run):
    content = "\n".join([
        "keep1",
        "!#safari_cb_affinity(general)",
        "dropped1",
        "dropped2",
        "!#safari_cb_affinity",
        "keep2",
    ])
    fetcher = PreFetchedContentFetcher({"list.txt": content})
    assert run(resolve("list.txt", fetcher)) == ["keep1", "keep2"]


def test_stray_else_endif_dropped(run):
    fetcher = PreFetchedContentFetcher({"list.txt": "a\n!#endif\nb\n!#else\nc"})
    assert run(resolve("list.txt", fetcher)) == ["a", "b", "c"]


def test_resolver_reusable_between_calls(run):
    fetcher = PreFetchedContentFetcher({"list.txt": "a\n!#include list.txt"})
    resolver = DirectiveResolver(fetcher)
    assert run(resolver.resolve("list.txt")) == ["a"]
    assert run(resolver.resolve("list.txt")) == ["a"]


def test_resolve_lines(run):
    fetcher = PreFetchedContentFetcher({"dir/inc.txt": "x"})
    resolver = DirectiveResolver(fetcher)
    assert run(resolver.resolve_lines(["!#include inc.txt", "y"], "dir/base.txt")) == ["x", "y"]
