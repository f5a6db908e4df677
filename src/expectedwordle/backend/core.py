import time
from dataclasses import dataclass
from typing import Iterable

from expectedwordle.config import MAX_ROUNDS, LOG_INTERVAL_DEFAULT, STARTING_WORDS, STARTING_WORDS_EXPECTED_MOVES
from expectedwordle.backend.errors import MissingSeedError, InvalidWordError
from expectedwordle.backend.helpers import (
    FeedbackTable, GuessResult, fingerprint, normalize_words, validate_word, validate_pattern,
    pattern_to_str, print_stats
)
from expectedwordle.backend.engine import ExpectimaxSolver
from expectedwordle.backend.cache import ResultStore
from expectedwordle.backend.messenger import UIMessenger, ConsoleMessenger

@dataclass(frozen=True)
class RoundTwoRow:
    """One precomputed answer: what to play after opener gave feedback."""
    opener: str
    feedback: int
    ncandidates: int
    result: GuessResult
    from_store: bool = False

class Precomputer:
    """
    Fills the result store with best guesses for round 2.

    Holds one solver, and therefore one memo, for the whole run so that
    candidate sets shared between openers are only searched once. Each
    opener gets its own search context.
    """
    def __init__(self,
                 store: ResultStore,
                 table: FeedbackTable | None = None,
                 max_rounds: int = MAX_ROUNDS,
                 log_interval: int = LOG_INTERVAL_DEFAULT,
                 messenger: UIMessenger | None = None):
        self.store = store
        self.max_rounds = max_rounds
        self.log_interval = log_interval
        self.messenger = messenger or ConsoleMessenger()
        if table is None:
            vocabulary = store.vocabulary()
            if not vocabulary:
                raise MissingSeedError("The result store has no vocabulary, run the seed step first.")
            table = FeedbackTable.build(vocabulary, self.messenger)
        self.table = table
        self.solver = ExpectimaxSolver(table, messenger=self.messenger)

    @staticmethod
    def seed(store: ResultStore,
             words: Iterable[str],
             openers: Iterable[str] = STARTING_WORDS,
             expected_moves: float = STARTING_WORDS_EXPECTED_MOVES,
             messenger: UIMessenger | None = None) -> int:
        """
        Replace the stored vocabulary and register the round 1 openers.
        Opener values are estimates until rank_openers replaces them.
        """
        messenger = messenger or ConsoleMessenger()
        vocabulary = normalize_words(words)
        if not vocabulary:
            raise MissingSeedError("No 5 letter words to seed the store with.")
        openers = list(dict.fromkeys(validate_word(word) for word in openers))
        vocabulary_set = set(vocabulary)
        for word in openers:
            if word not in vocabulary_set:
                raise InvalidWordError(word, "not in the vocabulary being seeded")

        nwords = store.replace_vocabulary(vocabulary, openers, expected_moves)
        messenger.log(f"[INFO] Inserted {nwords} candidate words.")
        messenger.log(f"[INFO] Registered {len(openers)} openers: {', '.join(openers)}")
        return nwords

    def openers(self) -> list[str]:
        openers = [row.guess for row in self.store.openers()]
        if not openers:
            raise MissingSeedError("No round 1 openers found in the result store, run the seed step first.")
        return openers

    def rank_openers(self, bootstrap: bool = False) -> list[GuessResult]:
        """
        Evaluate every opener exactly over the full vocabulary with one
        shared bound, store the values and the round 1 winner.

        With bootstrap the bound starts at the best stored estimate, which
        prunes harder but drops every opener if the estimate is optimistic.
        """
        stored = self.store.openers()
        if not stored:
            raise MissingSeedError("No round 1 openers found in the result store, run the seed step first.")
        best_so_far = min(row.expected_moves for row in stored) if bootstrap else float('inf')
        ctx = self.solver.new_context(self.max_rounds, best_so_far, self.log_interval)

        start_time = time.time()
        ranked = self.solver.rank_openings([row.guess for row in stored], self.table.words, ctx)
        for result in ranked:
            self.store.set_opener(result.guess, result.expected_moves, exact=result.exact)
            self.messenger.log(f"[INFO] Opener {result.guess}: {result.expected_moves:.5f} expected moves")
        if ranked:
            best = ranked[0]
            self.store.put(1, None, None, self.table.words, best.guess, best.expected_moves,
                           exact=best.exact, moves_left=self.max_rounds)
        self.messenger.log(f"[INFO] Ranked {len(ranked)} of {len(stored)} openers in {time.time() - start_time:.3f} sec.")
        print_stats(ctx.counts, self.solver.memo.nentries(), self.messenger)
        return ranked

    def run_round_two(self, openers: Iterable[str] | None = None) -> list[RoundTwoRow]:
        """
        For every opener, split the vocabulary by the feedback it gives and
        store the best guess for each group as a round 2 row.

        Rows already in the store for the same search depth are reused and
        seed the memo instead of being searched again, so an interrupted run can simply be restarted.
        """
        openers = [validate_word(word) for word in openers] if openers is not None else self.openers()
        all_idxs = self.table.indices(self.table.words)
        moves_left = self.max_rounds - 1
        rows: list[RoundTwoRow] = []

        for opener in openers:
            ctx = self.solver.new_context(self.max_rounds, log_interval=self.log_interval)
            feedback_groups = self.table.partition(opener, all_idxs)
            self.messenger.log(f"[INFO] Opener {opener}: {len(all_idxs)} candidates in {len(feedback_groups)} feedback groups.")
            start_time = time.time()

            self.messenger.start_progress(len(feedback_groups), desc=f"Round 2 after {opener}")
            for feedback, group_idxs in feedback_groups.items():
                group = self.table.words_at(group_idxs)
                rows.append(self._solve_group(opener, feedback, group, group_idxs, moves_left, ctx))
                self.messenger.update_progress()
            self.messenger.stop_progress()

            self.messenger.log(f"[INFO] Round 2 for {opener} complete in {time.time() - start_time:.3f} sec.")
            print_stats(ctx.counts, self.solver.memo.nentries(), self.messenger)
        return rows

    def _solve_group(self, opener, feedback, group, group_idxs, moves_left, ctx) -> RoundTwoRow:
        if len(group) <= 1:
            result = GuessResult(group[0], 0.0)
            self.store.put(2, opener, feedback, group, result.guess, result.expected_moves, moves_left=moves_left)
            return RoundTwoRow(opener, feedback, len(group), result)

        # Rows searched to another depth are recomputed and overwritten
        cached = self.store.get(2, opener, feedback, fingerprint(group), moves_left=moves_left)
        if cached is not None:
            ctx.inc('store_hits')
            key = self.solver.memo_key(group_idxs, moves_left)
            if key not in self.solver.memo:
                self.solver.memo.set(key, cached)
            return RoundTwoRow(opener, feedback, len(group), cached, from_store=True)

        self.messenger.log(f"[INFO] Feedback={pattern_to_str(feedback)}, group size={len(group)}. Computing optimal guess...")
        result = self.solver.solve(group, moves_left, ctx)
        self.messenger.log(f"[INFO] => best guess={result.guess}, expected moves={result.expected_moves:.3f}"
                           f"{'' if result.exact else ' (estimate)'}, expansions so far={ctx.expansions}")
        self.store.put(2, opener, feedback, group, result.guess, result.expected_moves,
                       exact=result.exact, moves_left=moves_left)
        return RoundTwoRow(opener, feedback, len(group), result)

def lookup_guess(store: ResultStore, previous_guess: str, feedback: str | int, round_number: int = 2) -> GuessResult | None:
    """Precomputed best guess after previous_guess produced feedback."""
    return store.lookup(round_number, validate_word(previous_guess), validate_pattern(feedback))
