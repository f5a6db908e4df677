from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
CONFIG_FILE = PROJECT_ROOT / "default_config.json"

GREEN = 2
YELLOW = 1
GRAY = 0

WORD_LENGTH = 5
NPATTERNS = 3**WORD_LENGTH
ALL_GREEN = NPATTERNS - 1

MAX_ROUNDS = 6
NEAR_ONE_EPSILON = 1e-5
LOG_INTERVAL_DEFAULT = 1000

VALID_GUESSES_URL = "https://gist.github.com/dracos/dd0668f281e685bad51479e5acaadb93/raw/6bfa15d263d6d5b63840a8e5b64e04b382fdb079/valid-wordle-words.txt"
WORDS_FILE = "data/words.txt"
PATTERN_MATRIX_FILE = "data/pattern_matrix.npy"
DATABASE_URL = "sqlite:///data/expectedwordle.db"

STARTING_WORDS = ["TRACE", "SALET", "ROATE", "RAISE", "SOARE"]
STARTING_WORDS_EXPECTED_MOVES = 3.5

EVENTS = [
    ('expansions', 'Nodes expanded'),
    ('cache_hits', 'Memo cache hits'),
    ('store_hits', 'Persistent store hits'),
    ('fallbacks', 'Depth-exhausted entropy fallbacks'),
    ('partial_aborts', 'Guesses abandoned mid-partition'),
    ('bound_skips', 'Guesses skipped by the global bound'),
    ('early_exits', 'Near-one early exits'),
]

REQUIRED_SCHEMA = {
    'database': {
        'url': str,
    },
    'words': {
        'file': str,
        'url': (str, type(None)),
        'refetch': bool,
    },
    'pattern_matrix': {
        'file': str,
        'recompute': bool,
        'save': bool,
    },
    'search': {
        'max_rounds': int,
        'log_interval': int,
    },
    'seed': {
        'openers': list,
        'expected_moves': (float, int),
    },
}
