import json

import pytest

from expectedwordle.config_loader import (
    ConfigError, _parse_cli_value, deep_merge, get_abs_path, load_config, parse_cli_args,
)


def test_defaults_are_valid():
    config = load_config(parse_cli_args(["seed"]))
    assert config['search']['max_rounds'] == 6
    assert config['words']['file'] == "data/words.txt"
    assert "SALET" in config['seed']['openers']


def test_set_overrides_nested_values():
    args = parse_cli_args(["--set", "search.max_rounds", "3",
                           "--set", "words.url", "none",
                           "--set", "seed.openers", "SLATE,CRANE",
                           "precompute", "--rank"])
    config = load_config(args)
    assert config['search']['max_rounds'] == 3
    assert config['words']['url'] is None
    assert config['seed']['openers'] == ["SLATE", "CRANE"]
    assert args.rank
    assert not args.bootstrap


def test_custom_file_is_merged(tmp_path):
    custom = tmp_path / "custom.json"
    custom.write_text(json.dumps({"search": {"log_interval": 50}}))
    config = load_config(parse_cli_args(["-c", str(custom), "seed"]))
    assert config['search']['log_interval'] == 50
    assert config['search']['max_rounds'] == 6


def test_broken_custom_file(tmp_path):
    custom = tmp_path / "custom.json"
    custom.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(parse_cli_args(["-c", str(custom), "seed"]))


@pytest.mark.parametrize("key, value", [
    ("search.max_rounds", "true"),
    ("search.max_rounds", "three"),
    ("search.max_rounds", "0"),
    ("search.log_interval", "-5"),
    ("words.refetch", "1"),
    ("seed.openers", "SLATE,CRANES"),
    ("database", "sqlite://"),
])
def test_invalid_values_are_rejected(key, value):
    with pytest.raises(ConfigError):
        load_config(parse_cli_args(["--set", key, value, "seed"]))


def test_lookup_arguments():
    args = parse_cli_args(["lookup", "slate", "GYBBB", "--round", "3"])
    assert (args.command, args.previous_guess, args.feedback, args.round_number) == ("lookup", "slate", "GYBBB", 3)
    assert parse_cli_args(["lookup", "slate", "20100"]).round_number == 2


def test_bootstrap_flag():
    args = parse_cli_args(["precompute", "--bootstrap"])
    assert args.bootstrap and not args.rank


def test_a_command_is_required():
    with pytest.raises(SystemExit):
        parse_cli_args([])


@pytest.mark.parametrize("raw, parsed", [
    ("none", None),
    ("True", True),
    ("42", 42),
    ("-3", -3),
    ("3.5", 3.5),
    ("[1, 2]", [1, 2]),
    ("[]", []),
    ("a,b", ["a", "b"]),
    ("sqlite:///x.db", "sqlite:///x.db"),
])
def test_parse_cli_value(raw, parsed):
    assert _parse_cli_value(raw) == parsed


def test_deep_merge_keeps_untouched_keys():
    merged = deep_merge({"a": {"b": 1}}, {"a": {"b": 0, "c": 2}, "d": 3})
    assert merged == {"a": {"b": 1, "c": 2}, "d": 3}


def test_relative_paths_resolve_from_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert get_abs_path("data/words.txt") == tmp_path / "data" / "words.txt"
    assert get_abs_path(tmp_path / "x.db") == tmp_path / "x.db"
