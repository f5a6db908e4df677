import math
from typing import Iterable

import numpy as np
from numba import njit

from expectedwordle.config import EVENTS, MAX_ROUNDS, NEAR_ONE_EPSILON, LOG_INTERVAL_DEFAULT, NPATTERNS
from expectedwordle.backend.errors import EmptyCandidateSetError, SearchPrunedError
from expectedwordle.backend.helpers import FeedbackTable, GuessResult, fingerprint, max_entropy
from expectedwordle.backend.cache import MemoCache
from expectedwordle.backend.messenger import UIMessenger, ConsoleMessenger

### ENTROPY HEURISTIC ###
@njit(cache=True)
def pattern_entropy(pattern_row: np.ndarray) -> float:
    """Shannon entropy in bits of the feedback codes in one table row."""
    nanswers = pattern_row.shape[0]
    if nanswers == 0:
        return 0.0
    counts = np.zeros(NPATTERNS, dtype=np.int64)
    for p in pattern_row:
        counts[p] += 1
    entropy = 0.0
    for c in counts:
        if c > 0:
            px = c / nanswers
            entropy -= px*np.log2(px)
    return entropy

@njit(cache=True)
def entropy_scores(pattern_block: np.ndarray) -> np.ndarray:
    """Entropy of every row of a (guesses, answers) block of the table."""
    nguesses = pattern_block.shape[0]
    entropy_vals = np.zeros(nguesses, dtype=np.float64)
    for i in range(nguesses):
        entropy_vals[i] = pattern_entropy(pattern_block[i])
    return entropy_vals

def score(guess: str, candidates: Iterable[str], table: FeedbackTable) -> float:
    """Expected information, in bits, from playing guess against candidates."""
    cand_idxs = table.indices(candidates)
    if len(cand_idxs) == 0:
        raise EmptyCandidateSetError(0)
    return float(pattern_entropy(table.matrix[table.word_index(guess), cand_idxs]))

### SEARCH CONTEXT ###
class SearchContext:
    """
    State for one top-level search: event counters and the pruning bound.

    `best_so_far` is the lowest expected moves found by any top-level call
    made with this context. Create a fresh context per top-level search and
    never share one between searches running at the same time.
    """
    def __init__(self,
                 max_moves: int = MAX_ROUNDS,
                 best_so_far: float = math.inf,
                 log_interval: int = LOG_INTERVAL_DEFAULT,
                 messenger: UIMessenger | None = None):
        if max_moves < 0:
            raise ValueError(f"max_moves must be non-negative, got {max_moves}")
        self.max_moves = max_moves
        self.best_so_far = best_so_far
        self.log_interval = log_interval
        self.messenger = messenger or ConsoleMessenger()
        self.counts: dict[str, int] = {name: 0 for name, _ in EVENTS}

    @property
    def expansions(self) -> int:
        return self.counts['expansions']

    def inc(self, name: str) -> None:
        self.counts[name] += 1

    def offer(self, expected_moves: float) -> bool:
        """Tighten the bound if expected_moves improves on it."""
        if expected_moves < self.best_so_far:
            self.best_so_far = expected_moves
            return True
        return False

    def expanded(self, moves_left: int, ncandidates: int) -> None:
        self.inc('expansions')
        if self.expansions % self.log_interval == 0:
            self.messenger.log(f"[INFO] expansions={self.expansions}, moves_left={moves_left}, set_size={ncandidates}")

### SEARCH ENGINE ###
class ExpectimaxSolver:
    """
    Exact expected-moves search over a fixed feedback table.

    Cost model: playing a guess costs 1, a feedback group holding a single
    word (or none) costs nothing more, and any larger group costs its
    probability times the best expected moves for that group with one move
    fewer. With no moves left the entropy estimate
    1 + (log2(n) - entropy) is returned instead and flagged as not exact.

    The memo outlives individual searches, so one solver can be reused for
    every top-level search of a process run.
    """
    def __init__(self,
                 table: FeedbackTable,
                 memo: MemoCache | None = None,
                 messenger: UIMessenger | None = None,
                 near_one_epsilon: float = NEAR_ONE_EPSILON):
        self.table = table
        self.memo = memo if memo is not None else MemoCache()
        self.messenger = messenger or ConsoleMessenger()
        self.near_one_epsilon = near_one_epsilon

    def new_context(self, max_moves: int = MAX_ROUNDS, best_so_far: float = math.inf,
                    log_interval: int = LOG_INTERVAL_DEFAULT) -> SearchContext:
        return SearchContext(max_moves, best_so_far, log_interval, self.messenger)

    def solve(self, candidates: Iterable[str], moves_left: int, ctx: SearchContext | None = None) -> GuessResult:
        """
        Best guess for candidates with moves_left moves of search depth.

        Raises EmptyCandidateSetError for an empty set and SearchPrunedError
        when called at the context's top level and nothing beats its bound.
        """
        if moves_left < 0:
            raise ValueError(f"moves_left must be non-negative, got {moves_left}")
        if ctx is None:
            ctx = self.new_context(max_moves=moves_left)
        elif moves_left > ctx.max_moves:
            raise ValueError(f"moves_left ({moves_left}) exceeds the context's max_moves ({ctx.max_moves})")
        return self._solve(self.table.indices(candidates), moves_left, ctx)

    def memo_key(self, cand_idxs: np.ndarray, moves_left: int) -> tuple[int, str]:
        return (moves_left, fingerprint(self.table.words_at(cand_idxs)))

    def _solve(self, cand_idxs: np.ndarray, moves_left: int, ctx: SearchContext) -> GuessResult:
        nanswers = len(cand_idxs)
        if nanswers == 0:
            raise EmptyCandidateSetError(moves_left)
        if nanswers == 1:
            return GuessResult(self.table.words[cand_idxs[0]], 0.0)
        if moves_left == 0:
            return self._fallback(cand_idxs, ctx)

        ### CACHE LOOKUP ###
        key = self.memo_key(cand_idxs, moves_left)
        value, success = self.memo.get(key)
        if success:
            ctx.inc('cache_hits')
            return value

        ctx.expanded(moves_left, nanswers)
        top_level = moves_left == ctx.max_moves

        ### ORDER GUESSES ###
        # Stable sort keeps lexicographic order among equal entropies, which
        # decides which of several optimal guesses is reported
        pattern_block = self.table.matrix[np.ix_(cand_idxs, cand_idxs)]
        entropy_vals = entropy_scores(pattern_block)
        guess_order = np.argsort(-entropy_vals, kind='stable')

        ### EVALUATE CANDIDATE GUESSES ###
        best_local = -1
        best_expected = math.inf
        best_exact = True
        for local_idx in guess_order:
            bound = min(best_expected, ctx.best_so_far) if top_level else best_expected
            expected, exact = self._expected_moves(cand_idxs, pattern_block[local_idx], moves_left - 1, bound, ctx)
            if math.isinf(expected):
                continue
            if top_level and expected >= ctx.best_so_far:
                ctx.inc('bound_skips')
                continue
            if expected < best_expected:
                best_local = local_idx
                best_expected = expected
                best_exact = exact
                if best_expected <= 1 + self.near_one_epsilon:
                    ctx.inc('early_exits')
                    break

        if best_local < 0:
            raise SearchPrunedError(ctx.best_so_far, nanswers)

        result = GuessResult(self.table.words[cand_idxs[best_local]], float(best_expected), best_exact)
        self.memo.set(key, result)
        if top_level:
            ctx.offer(result.expected_moves)
        return result

    def _expected_moves(self,
                        cand_idxs: np.ndarray,
                        pattern_row: np.ndarray,
                        child_moves_left: int,
                        bound: float,
                        ctx: SearchContext) -> tuple[float, bool]:
        """
        Expected moves of the guess whose feedback row is pattern_row.
        Returns inf as soon as the running sum reaches bound.
        """
        nanswers = len(cand_idxs)
        expected = 1.0
        exact = True
        patterns, pcounts = np.unique(pattern_row, return_counts=True)
        for pattern, count in zip(patterns, pcounts):
            if count > 1:
                child = self._solve(cand_idxs[pattern_row == pattern], child_moves_left, ctx)
                expected += (count/nanswers)*child.expected_moves
                exact = exact and child.exact
            if expected >= bound:
                ctx.inc('partial_aborts')
                return math.inf, exact
        return expected, exact

    def _fallback(self, cand_idxs: np.ndarray, ctx: SearchContext) -> GuessResult:
        """Depth exhausted: pick the highest entropy guess, cost is an estimate."""
        ctx.inc('fallbacks')
        pattern_block = self.table.matrix[np.ix_(cand_idxs, cand_idxs)]
        fallback_costs = 1 + (max_entropy(len(cand_idxs)) - entropy_scores(pattern_block))
        best_local = int(np.argmin(fallback_costs))
        return GuessResult(self.table.words[cand_idxs[best_local]], float(fallback_costs[best_local]), exact=False)

    def evaluate_opening(self, guess: str, candidates: Iterable[str], ctx: SearchContext) -> GuessResult:
        """
        Expected moves of playing a fixed first guess over candidates.

        Every feedback group is solved with ctx.max_moves - 1 moves left.
        Evaluation stops with SearchPrunedError once the running total
        reaches ctx.best_so_far, and a completed value that beats it
        becomes the new bound, so openings evaluated later with the same
        context prune against the best one so far.
        """
        if ctx.max_moves < 1:
            raise ValueError("An opening needs at least one move.")
        cand_idxs = self.table.indices(candidates)
        if len(cand_idxs) == 0:
            raise EmptyCandidateSetError(ctx.max_moves)

        guess_idx = self.table.word_index(guess)
        pattern_row = self.table.matrix[guess_idx, cand_idxs]
        expected, exact = self._expected_moves(cand_idxs, pattern_row, ctx.max_moves - 1, ctx.best_so_far, ctx)
        if math.isinf(expected):
            ctx.inc('bound_skips')
            raise SearchPrunedError(ctx.best_so_far, len(cand_idxs), guess=self.table.words[guess_idx])
        ctx.offer(expected)
        return GuessResult(self.table.words[guess_idx], float(expected), exact)

    def rank_openings(self, guesses: Iterable[str], candidates: Iterable[str], ctx: SearchContext) -> list[GuessResult]:
        """Evaluate openings in order, dropping the ones the bound prunes."""
        candidates = list(candidates)
        results = []
        for guess in guesses:
            try:
                results.append(self.evaluate_opening(guess, candidates, ctx))
            except SearchPrunedError as e:
                self.messenger.log(f"[INFO] {e}")
        return sorted(results, key=lambda result: result.expected_moves)
