import json

import pytest

from hostlist_compiler.config import (
    CompilerSettings,
    Configuration,
    SourceType,
    TransformationType,
    load_configuration,
)
from hostlist_compiler.errors import ConfigurationError


def test_settings_defaults():
    settings = CompilerSettings()
    assert settings.max_include_depth == 10
    assert settings.target_platform is None
    assert settings.allow_empty_response is True


def test_settings_env_overrides(monkeypatch):
    monkeypatch.setenv("MAX_INCLUDE_DEPTH", "3")
    monkeypatch.setenv("TARGET_PLATFORM", "windows")
    monkeypatch.setenv("ALLOW_EMPTY_RESPONSE", "false")
    settings = CompilerSettings()
    assert settings.max_include_depth == 3
    assert settings.target_platform == "windows"
    assert settings.allow_empty_response is False


def test_negative_depth_rejected():
    with pytest.raises(ConfigurationError):
        CompilerSettings(max_include_depth=-1)


def test_transformation_type_parse():
    assert TransformationType.parse("Compress") is TransformationType.COMPRESS
    assert TransformationType.parse(TransformationType.VALIDATE) is TransformationType.VALIDATE
    assert TransformationType.parse("Nope") is None


def test_configuration_from_dict():
    config = Configuration.from_dict({
        "name": "My list",
        "description": "desc",
        "sources": [
            {"source": "https://example.org/hosts.txt", "type": "hosts", "name": "Hosts",
             "exclusions": ["*.cdn.*"], "exclusionsSources": ["excl.txt"]},
            {"source": "local.txt"},
        ],
        "transformations": ["Deduplicate", "Compress"],
        "inclusionsSources": ["incl.txt"],
    })
    assert config.name == "My list"
    assert config.sources[0].type is SourceType.HOSTS
    assert config.sources[0].exclusions == ["*.cdn.*"]
    assert config.sources[0].exclusions_sources == ["excl.txt"]
    assert config.sources[1].type is SourceType.ADBLOCK
    assert config.inclusions_sources == ["incl.txt"]
    assert config.to_dict()["inclusionsSources"] == ["incl.txt"]


def test_configuration_collects_all_errors():
    with pytest.raises(ConfigurationError) as info:
        Configuration.from_dict({
            "sources": [{"source": ""}, {"source": "a.txt", "type": "weird"}],
            "exclusions": "not-a-list",
        })
    errors = info.value.errors
    assert any("name" in e for e in errors)
    assert any("sources[0]" in e for e in errors)
    assert any("weird" in e for e in errors)
    assert any("exclusions" in e for e in errors)


def test_configuration_requires_sources():
    with pytest.raises(ConfigurationError):
        Configuration.from_dict({"name": "x", "sources": []})
    with pytest.raises(ConfigurationError):
        Configuration.from_dict(["not", "an", "object"])


def test_unknown_transformation_is_kept():
    config = Configuration.from_dict({
        "name": "x", "sources": [{"source": "a.txt"}], "transformations": ["Bogus"],
    })
    assert config.transformations == ["Bogus"]


def test_load_configuration(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"name": "x", "sources": [{"source": "a.txt"}]}), encoding="utf-8")
    assert load_configuration(path).sources[0].source == "a.txt"


def test_load_configuration_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_configuration(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_configuration(bad)
