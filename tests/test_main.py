import pytest
from sqlalchemy.exc import OperationalError

from expectedwordle import ResultStore
from expectedwordle.backend.main import run
from conftest import SEED_VOCABULARY


@pytest.fixture
def cli_args(tmp_path):
    words_file = tmp_path / "words.txt"
    words_file.write_text("\n".join(SEED_VOCABULARY))
    return [
        "--set", "database.url", f"sqlite:///{tmp_path / 'results.db'}",
        "--set", "words.file", str(words_file),
        "--set", "words.url", "none",
        "--set", "pattern_matrix.file", str(tmp_path / "pattern_matrix.npy"),
        "--set", "search.max_rounds", "3",
        "--set", "seed.openers", "SLATE,CRANE",
    ]


def test_seed_precompute_lookup(cli_args, tmp_path, capsys):
    assert run(cli_args + ["seed"]) == 0
    assert "Inserted 20 candidate words." in capsys.readouterr().out

    assert run(cli_args + ["precompute", "--rank"]) == 0
    out = capsys.readouterr().out
    assert "Precomputation for round 2 complete!" in out
    assert (tmp_path / "pattern_matrix.npy").exists()

    # SLATE against CRANE: only A and E land, both green
    assert run(cli_args + ["lookup", "slate", "00202"]) == 0
    assert "SLATE 00202 -> " in capsys.readouterr().out

    assert run(cli_args + ["lookup", "SLATE", "BBGBG"]) == 0
    assert run(cli_args + ["lookup", "SLATE", "22222", "--round", "3"]) == 1


def test_precompute_before_seed(cli_args, capsys):
    assert run(cli_args + ["precompute"]) == 1
    assert "seed step" in capsys.readouterr().err


def test_bad_feedback(cli_args, capsys):
    assert run(cli_args + ["lookup", "SLATE", "22A"]) == 1
    assert "Invalid pattern" in capsys.readouterr().err


def test_bad_config(cli_args, capsys):
    assert run(cli_args + ["--set", "search.max_rounds", "0", "seed"]) == 2
    assert "search.max_rounds" in capsys.readouterr().err


def test_opener_outside_vocabulary(cli_args, capsys):
    assert run(cli_args + ["--set", "seed.openers", "[ROATE]", "seed"]) == 1
    assert "ROATE" in capsys.readouterr().err


def test_bootstrap_with_optimistic_estimate(cli_args, capsys):
    assert run(cli_args + ["--set", "seed.expected_moves", "1.0", "seed"]) == 0
    capsys.readouterr()
    assert run(cli_args + ["precompute", "--bootstrap"]) == 0
    assert "Ranked 0 of 2 openers" in capsys.readouterr().out


def test_store_failure_is_reported(cli_args, monkeypatch, capsys):
    assert run(cli_args + ["seed"]) == 0

    def failing_read(self):
        raise OperationalError("SELECT word FROM candidate_words", {}, Exception("disk I/O error"))
    monkeypatch.setattr(ResultStore, "vocabulary", failing_read)

    assert run(cli_args + ["precompute"]) == 1
    assert "result store failure" in capsys.readouterr().err
