from hostlist_compiler.transformations.compress import (
    CompressTransformation,
    parent_domains,
    to_blocklist_records,
)


def _compress(run, rules):
    return run(CompressTransformation().execute(rules))


def test_parent_domains():
    assert list(parent_domains("a.b.example.org")) == ["b.example.org", "example.org", "org"]
    assert list(parent_domains("org")) == []


def test_records():
    records = to_blocklist_records("0.0.0.0 a.com b.com")
    assert [r.rule_text for r in records] == ["||a.com^", "||b.com^"]
    assert all(r.can_compress for r in records)

    [record] = to_blocklist_records("example.org")
    assert record.rule_text == "||example.org^"

    [record] = to_blocklist_records("||example.org^$important")
    assert not record.can_compress

    [record] = to_blocklist_records("@@||example.org^")
    assert not record.can_compress


def test_subsumption(run):
    assert _compress(run, ["||example.org^", "||sub.example.org^"]) == ["||example.org^"]
    assert _compress(run, ["||sub.example.org^", "||example.org^"]) == ["||example.org^"]
    assert _compress(run, ["0.0.0.0 a.com", "||sub.a.com^"]) == ["||a.com^"]


def test_mixed_input(run):
    rules = [
        "0.0.0.0 a.com b.com",
        "||sub.a.com^",
        "example.org",
        "||example.org^",
        "@@||c.com^",
        "||d.com^$important",
        "||x.d.com^$important",
        "! comment",
    ]
    assert _compress(run, rules) == [
        "||a.com^",
        "||b.com^",
        "||example.org^",
        "@@||c.com^",
        "||d.com^$important",
        "||x.d.com^$important",
        "! comment",
    ]


def test_compress_is_idempotent(run):
    rules = ["0.0.0.0 a.com", "||b.a.com^", "c.net", "||d.org^$important", "! note", ""]
    once = _compress(run, rules)
    assert _compress(run, once) == once


def test_network_rules_keep_relative_order(run):
    rules = ["||z.com^", "||y.com^", "||sub.z.com^", "||x.com^", "||y.com^"]
    result = _compress(run, rules)
    assert result == ["||z.com^", "||y.com^", "||x.com^"]
    it = iter(rules)
    assert all(rule in it for rule in result)


def test_hostnames_compare_case_insensitively(run):
    assert _compress(run, ["||Example.org^", "||sub.example.org^"]) == ["||Example.org^"]
    assert _compress(run, ["0.0.0.0 ADS.example.com", "||ads.example.com^"]) == ["||ADS.example.com^"]
