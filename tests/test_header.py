import base64
import hashlib
from datetime import datetime, timezone

from hostlist_compiler.config import VERSION, Configuration, Source
from hostlist_compiler.header import (
    add_checksum_to_header,
    calculate_checksum,
    generate_list_header,
    generate_source_header,
    strip_upstream_headers,
)

TIMESTAMP = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_list_header_full():
    config = Configuration(
        name="My list",
        sources=[Source(source="a.txt")],
        description="Blocks things",
        version="2.0",
        homepage="https://example.org",
        license="MIT",
    )
    assert generate_list_header(config, TIMESTAMP) == [
        "!",
        "! Title: My list",
        "! Description: Blocks things",
        "! Version: 2.0",
        "! Homepage: https://example.org",
        "! License: MIT",
        "! Last modified: 2024-01-02T03:04:05.000Z",
        "!",
        f"! Compiled by hostlist-compiler v{VERSION}",
        "!",
    ]


def test_list_header_minimal():
    header = generate_list_header(Configuration(name="x", sources=[]), TIMESTAMP)
    assert header[:3] == ["!", "! Title: x", "! Last modified: 2024-01-02T03:04:05.000Z"]


def test_source_header():
    assert generate_source_header(Source(source="a.txt", name="A")) == [
        "!", "! Source name: A", "! Source: a.txt", "!",
    ]
    assert generate_source_header(Source(source="b.txt")) == ["!", "! Source: b.txt", "!"]


def test_checksum_ignores_existing_checksum_lines():
    lines = ["! Title: x", "||a.com^"]
    expected = base64.b64encode(hashlib.sha256("! Title: x\n||a.com^".encode()).digest()).decode()[:27]
    assert calculate_checksum(lines) == expected
    assert calculate_checksum(["! Checksum: old"] + lines) == expected
    assert len(expected) == 27


def test_checksum_inserted_before_compiled_by_block():
    lines = ["!", "! Title: x", "!", "! Compiled by hostlist-compiler v1", "!", "||a.com^"]
    result = add_checksum_to_header(lines)
    assert result[2] == f"! Checksum: {calculate_checksum(lines)}"
    assert result[3:] == lines[2:]


def test_checksum_without_compiled_by():
    lines = ["! Title: x", "||a.com^"]
    result = add_checksum_to_header(lines)
    assert result[1].startswith("! Checksum: ")
    assert result[2] == "||a.com^"


def test_strip_upstream_headers():
    lines = [
        "!",
        "! Title: Upstream",
        "! Last modified: yesterday",
        "!",
        "! Checksum: abc",
        "! Compiled by something v1",
        "!",
        "! Useful note",
        "||a.com^",
        "!",
        "! Expires: 4 days",
        "||b.com^",
    ]
    assert strip_upstream_headers(lines) == ["! Useful note", "||a.com^", "!", "||b.com^"]


def test_strip_upstream_headers_leaves_plain_lists_alone():
    lines = ["||a.com^", "", "! comment", "||b.com^"]
    assert strip_upstream_headers(lines) == lines
