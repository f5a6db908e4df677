# all convience imports from backend
from .backend.errors import (
    InvalidWordError, WordLengthError, InvalidPatternError, EmptyCandidateSetError,
    SearchPrunedError, CacheWriteError, MissingSeedError
)
from .backend.helpers import (
    GuessResult,
    get_pattern,
    encode,
    pattern_to_int,
    int_to_pattern,
    pattern_to_str,
    pattern_str_to_int,
    validate_pattern,
    validate_word,
    normalize_words,
    get_words,
    fingerprint,
    precompute_pattern_matrix,
    get_pattern_matrix,
    FeedbackTable,
    print_stats
)
from .backend.engine import (
    pattern_entropy, entropy_scores, score, SearchContext, ExpectimaxSolver
)
from .backend.cache import (
    MemoCache, ResultStore
)
from .backend.core import (
    Precomputer, RoundTwoRow, lookup_guess
)
from .backend.messenger import (
    UIMessenger, ConsoleMessenger
)

from .config import *
