import pytest
from sqlalchemy import text

from expectedwordle import (
    CacheWriteError, ExpectimaxSolver, FeedbackTable, GuessResult, InvalidWordError, MissingSeedError,
    Precomputer, encode, fingerprint, lookup_guess, pattern_to_str,
)
from conftest import SEED_VOCABULARY

OPENERS = ["SLATE", "CRANE"]


@pytest.fixture
def seeded_store(store, messenger):
    Precomputer.seed(store, SEED_VOCABULARY, OPENERS, 3.5, messenger)
    return store


@pytest.fixture
def precomputer(seeded_store, messenger):
    return Precomputer(seeded_store, max_rounds=4, messenger=messenger)


def test_seed_stores_vocabulary_and_openers(seeded_store):
    assert seeded_store.vocabulary() == sorted(SEED_VOCABULARY)
    openers = seeded_store.openers()
    assert {row.guess for row in openers} == set(OPENERS)
    assert all(row.expected_moves == 3.5 and not row.exact for row in openers)


def test_seed_rejects_openers_outside_vocabulary(store, messenger):
    with pytest.raises(InvalidWordError):
        Precomputer.seed(store, SEED_VOCABULARY, ["ROATE"], 3.5, messenger)
    assert store.vocabulary() == []


def test_seed_replaces_previous_openers(seeded_store, messenger):
    Precomputer.seed(seeded_store, SEED_VOCABULARY, ["trace"], 3.5, messenger)
    assert [row.guess for row in seeded_store.openers()] == ["TRACE"]


def test_precompute_needs_a_seed(store, messenger):
    with pytest.raises(MissingSeedError):
        Precomputer(store, messenger=messenger)


def test_round_two_covers_every_feedback_group(precomputer, seeded_store):
    rows = precomputer.run_round_two()

    expected_groups = {
        (opener, encode(opener, word)) for opener in OPENERS for word in SEED_VOCABULARY
    }
    assert {(row.opener, row.feedback) for row in rows} == expected_groups
    assert seeded_store.count(2) == len(expected_groups)
    for opener in OPENERS:
        assert sum(row.ncandidates for row in rows if row.opener == opener) == len(SEED_VOCABULARY)


def test_round_two_rows_match_a_direct_search(precomputer, seeded_store, messenger):
    rows = precomputer.run_round_two(["SLATE"])
    table = FeedbackTable.build(SEED_VOCABULARY, messenger)
    fresh = ExpectimaxSolver(table, messenger=messenger)

    for row in rows:
        group = [word for word in SEED_VOCABULARY if encode("SLATE", word) == row.feedback]
        assert len(group) == row.ncandidates
        if len(group) == 1:
            assert row.result == GuessResult(group[0], 0.0)
        else:
            assert row.result == fresh.solve(group, 3)
        assert seeded_store.get(2, "SLATE", row.feedback, fingerprint(group)) == row.result


def test_rerun_reuses_stored_rows(seeded_store, messenger):
    first = Precomputer(seeded_store, max_rounds=4, messenger=messenger).run_round_two()
    count = seeded_store.count()

    second = Precomputer(seeded_store, max_rounds=4, messenger=messenger).run_round_two()
    assert seeded_store.count() == count
    assert [row.result for row in second] == [row.result for row in first]
    assert all(row.from_store for row in second if row.ncandidates > 1)
    assert not any(row.from_store for row in first)


def test_lookup_guess(precomputer, seeded_store):
    rows = precomputer.run_round_two()
    row = next(row for row in rows if row.opener == "CRANE" and row.ncandidates > 1)
    pattern = pattern_to_str(row.feedback)

    assert lookup_guess(seeded_store, "crane", pattern) == row.result
    assert lookup_guess(seeded_store, "CRANE", row.feedback) == row.result
    assert lookup_guess(seeded_store, "CRANE", row.feedback, round_number=3) is None


def test_lookup_guess_validates_input(seeded_store):
    with pytest.raises(InvalidWordError):
        lookup_guess(seeded_store, "CRANES", "00000")


def test_rank_openers_stores_exact_values(precomputer, seeded_store):
    ranked = precomputer.rank_openers()

    assert ranked
    stored = {row.guess: row for row in seeded_store.openers()}
    for result in ranked:
        assert stored[result.guess].expected_moves == pytest.approx(result.expected_moves)
        assert stored[result.guess].exact == result.exact
    assert seeded_store.get(1, None, None, fingerprint(SEED_VOCABULARY)) == ranked[0]


def test_rank_openers_bootstrap_with_optimistic_estimate(seeded_store, messenger):
    Precomputer.seed(seeded_store, SEED_VOCABULARY, OPENERS, 1.0, messenger)
    precomputer = Precomputer(seeded_store, max_rounds=4, messenger=messenger)
    assert precomputer.rank_openers(bootstrap=True) == []
    assert seeded_store.count(1) == 0

def test_rows_from_a_shallower_run_are_recomputed(seeded_store, messenger):
    shallow = Precomputer(seeded_store, max_rounds=2, messenger=messenger).run_round_two(["SLATE"])
    assert any(not row.result.exact for row in shallow)

    deep = Precomputer(seeded_store, max_rounds=4, messenger=messenger).run_round_two(["SLATE"])
    fresh = ExpectimaxSolver(FeedbackTable.build(SEED_VOCABULARY, messenger), messenger=messenger)
    for row in deep:
        assert not row.from_store
        if row.ncandidates > 1:
            group = [word for word in SEED_VOCABULARY if encode("SLATE", word) == row.feedback]
            assert row.result == fresh.solve(group, 3)
            assert seeded_store.get(2, "SLATE", row.feedback, fingerprint(group), moves_left=3) == row.result
    assert seeded_store.count(2) == len(deep)


def test_failed_seed_raises_store_error(seeded_store, messenger):
    with seeded_store.engine.begin() as connection:
        connection.execute(text("DROP TABLE round1"))
    with pytest.raises(CacheWriteError):
        Precomputer.seed(seeded_store, SEED_VOCABULARY[:10], ["SLATE"], 3.5, messenger)
    assert seeded_store.vocabulary() == sorted(SEED_VOCABULARY)


def test_duplicate_openers_are_seeded_once(store, messenger):
    Precomputer.seed(store, SEED_VOCABULARY, ["slate", "SLATE", "CRANE"], 3.5, messenger)
    assert sorted(row.guess for row in store.openers()) == ["CRANE", "SLATE"]
