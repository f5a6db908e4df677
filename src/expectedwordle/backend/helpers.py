import os
import json
import hashlib
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import numpy as np
import requests
from numba import njit

from expectedwordle.config import (
    GREEN, YELLOW, GRAY, WORD_LENGTH, ALL_GREEN, EVENTS,
    VALID_GUESSES_URL, WORDS_FILE, PATTERN_MATRIX_FILE
)
from expectedwordle.backend.errors import InvalidWordError, WordLengthError, InvalidPatternError
from expectedwordle.backend.messenger import UIMessenger, ConsoleMessenger

### TYPES ###
@dataclass(frozen=True)
class GuessResult:
    """
    Best guess for a candidate set and its expected number of further moves.

    `exact` is False when the value came from (or was built on) the
    depth-exhausted entropy estimate instead of a full search.
    """
    guess: str
    expected_moves: float
    exact: bool = True

### FEEDBACK ENCODING ###
def get_pattern(guess: str, solution: str) -> list[int]:
    """Calculates the wordle pattern for guess word and solution word."""
    if len(guess) != len(solution):
        raise WordLengthError(guess, solution)

    pattern = [GRAY]*len(guess)
    consumed = [False]*len(solution)

    # Green pass
    for i in range(len(guess)):
        if guess[i] == solution[i]:
            pattern[i] = GREEN
            consumed[i] = True

    # Yellow pass, each solution letter can only be matched once
    for i in range(len(guess)):
        if pattern[i] == GREEN:
            continue
        for j in range(len(solution)):
            if not consumed[j] and solution[j] == guess[i]:
                pattern[i] = YELLOW
                consumed[j] = True
                break

    return pattern

def encode(guess: str, solution: str) -> int:
    """Feedback code in [0, 242] for guess played against solution."""
    return pattern_to_int(get_pattern(guess, solution))

def pattern_to_int(pattern: list[int]) -> int:
    """Converts a pattern list represeting a wordle pattern to a unique int"""
    if len(pattern) != WORD_LENGTH:
        raise InvalidPatternError(pattern, f"pattern list must have {WORD_LENGTH} elements.")
    ret_int = 0
    for i in range(WORD_LENGTH):
        if pattern[i] not in (GRAY, YELLOW, GREEN):
            raise InvalidPatternError(pattern, f"unknown mark {pattern[i]!r} at position {i}.")
        ret_int += (3**i)*pattern[i]
    return ret_int

def int_to_pattern(num: int) -> list[int]:
    """Converts an int back to its pattern list"""
    if not 0 <= num <= ALL_GREEN:
        raise InvalidPatternError(num, f"pattern int must be in the range [0, {ALL_GREEN}].")
    pattern = WORD_LENGTH*[GRAY]
    for i in range(WORD_LENGTH - 1, -1, -1):
        pattern[i], num = divmod(num, 3**i)
    return pattern

def pattern_to_str(num: int) -> str:
    """Digit string form of a pattern int, position i is the i-th character."""
    return "".join(str(mark) for mark in int_to_pattern(num))

def pattern_str_to_int(pattern: str) -> int:
    """
    Parses a 5 symbol feedback string.

    Accepts digits (2 = green, 1 = yellow, 0 = gray) or letters
    (G = green, Y = yellow, B/X/. = gray), mixed freely.
    """
    pattern_str = pattern.strip().upper().replace(" ", "")
    if len(pattern_str) != WORD_LENGTH:
        raise InvalidPatternError(pattern, f"pattern string must be {WORD_LENGTH} characters.")
    pattern_list = []
    for c in pattern_str:
        match c:
            case "G" | "2": pattern_list.append(GREEN)
            case "Y" | "1": pattern_list.append(YELLOW)
            case "B" | "X" | "." | "0": pattern_list.append(GRAY)
            case _: raise InvalidPatternError(pattern, f"bad symbol {c!r}.")
    return pattern_to_int(pattern_list)

def validate_pattern(pattern: str | list[int] | int) -> int:
    """Checks if a pattern is valid and returns its int form."""
    if isinstance(pattern, bool):
        raise InvalidPatternError(pattern, "pattern cannot be a bool.")
    if isinstance(pattern, (int, np.integer)):
        if not 0 <= pattern <= ALL_GREEN:
            raise InvalidPatternError(pattern, f"pattern int must be in the range [0, {ALL_GREEN}].")
        return int(pattern)
    if isinstance(pattern, str):
        return pattern_str_to_int(pattern)
    if isinstance(pattern, (list, tuple)):
        return pattern_to_int(list(pattern))
    raise InvalidPatternError(pattern, f"cannot handle patterns of type {type(pattern).__name__}.")

### WORDS ###
def validate_word(word: str) -> str:
    """Uppercases a word and checks it is 5 ASCII letters."""
    if not isinstance(word, str):
        raise InvalidWordError(repr(word), "not a string")
    cleaned = word.strip().upper()
    if len(cleaned) != WORD_LENGTH or not (cleaned.isascii() and cleaned.isalpha()):
        raise InvalidWordError(word, f"not a {WORD_LENGTH} letter word")
    return cleaned

def normalize_words(words: Iterable[str]) -> list[str]:
    """Canonical vocabulary: validated, deduplicated and sorted."""
    return sorted({validate_word(word) for word in words})

def words_to_array(words: list[str]) -> np.ndarray:
    """Letter codes (A = 0) for each word, shape (nwords, 5)."""
    if not words:
        return np.zeros((0, WORD_LENGTH), dtype=np.uint8)
    return np.array([[ord(c) - ord('A') for c in word] for word in words], dtype=np.uint8)

def get_words(savefile: str | Path = WORDS_FILE,
              url: str | None = VALID_GUESSES_URL,
              refetch: bool = False,
              save: bool = True,
              messenger: UIMessenger | None = None) -> list[str]:
    """
    Retrieves the word list as distinct uppercase 5 letter words.
    It reads a local file if it exists, otherwise it fetches from a URL.
    """
    messenger = messenger or ConsoleMessenger()

    # --- Path 1: Reading from local file ---
    if not refetch and os.path.exists(savefile):
        messenger.log(f"Fetching words from {savefile}")
        with open(savefile, 'r') as f:
            return _filter_words(f.read().split())

    # --- Path 2: Fetching from the web ---
    if not url:
        raise FileNotFoundError(f"No word list at {savefile} and no URL to fetch one from.")
    messenger.log("No word list exists or refetching requested, fetching from the web")
    try:
        response = requests.get(url, timeout=30)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        messenger.log(f"Error downloading the word list: {e}")
        return []

    words = _filter_words(response.text.split())
    if save:
        messenger.log(f"Saving {len(words)} words to {savefile}")
        Path(savefile).parent.mkdir(parents=True, exist_ok=True)
        with open(savefile, 'w') as f:
            f.write('\n'.join(words))
    return words

def _filter_words(raw_words: list[str]) -> list[str]:
    kept = set()
    for raw in raw_words:
        word = raw.strip().upper()
        if len(word) == WORD_LENGTH and word.isascii() and word.isalpha():
            kept.add(word)
    return sorted(kept)

### FINGERPRINT ###
def fingerprint(words: Iterable[str]) -> str:
    """
    Canonical 128-bit content hash of a candidate set.

    Members are sorted and comma joined first so membership alone decides
    the hash. md5 is stable across runs, which keeps stored rows findable.
    """
    joined = ",".join(sorted(words))
    return hashlib.md5(joined.encode("utf-8")).hexdigest()

### FEEDBACK TABLE ###
@njit(cache=True)
def pattern_row(guess: np.ndarray, answers: np.ndarray) -> np.ndarray:
    """Feedback codes of one guess (letter codes) against every answer row."""
    nanswers = answers.shape[0]
    nletters = guess.shape[0]
    row = np.zeros(nanswers, dtype=np.uint8)
    marks = np.zeros(nletters, dtype=np.int64)
    consumed = np.zeros(nletters, dtype=np.bool_)
    for j in range(nanswers):
        for i in range(nletters):
            marks[i] = 0
            consumed[i] = False
        for i in range(nletters):
            if guess[i] == answers[j, i]:
                marks[i] = 2
                consumed[i] = True
        for i in range(nletters):
            if marks[i] == 2:
                continue
            for k in range(nletters):
                if not consumed[k] and answers[j, k] == guess[i]:
                    marks[i] = 1
                    consumed[k] = True
                    break
        code = 0
        power = 1
        for i in range(nletters):
            code += marks[i]*power
            power *= 3
        row[j] = code
    return row

def precompute_pattern_matrix(words: list[str], messenger: UIMessenger | None = None) -> np.ndarray:
    """Generates the (n, n) uint8 pattern matrix, row = guess, column = solution."""
    messenger = messenger or ConsoleMessenger()
    letters = words_to_array(words)
    nwords = len(words)
    pattern_matrix = np.empty((nwords, nwords), dtype=np.uint8)
    messenger.start_progress(nwords, desc="Building Pattern Matrix")
    for i in range(nwords):
        pattern_matrix[i] = pattern_row(letters[i], letters)
        messenger.update_progress()
    messenger.stop_progress()
    return pattern_matrix

class FeedbackTable:
    """
    Dense pairwise feedback table over a fixed vocabulary.

    The vocabulary is stored sorted, so ascending index order is also
    lexicographic order. `matrix[i, j]` is the code of words[i] played
    against words[j].
    """
    def __init__(self, words: list[str], matrix: np.ndarray):
        nwords = len(words)
        if matrix.shape != (nwords, nwords):
            raise ValueError(f'Pattern matrix must be shape {(nwords, nwords)}, got {matrix.shape}.')
        if list(words) != sorted(set(words)):
            raise ValueError('Vocabulary must be sorted and free of duplicates.')
        self.words: tuple[str, ...] = tuple(words)
        self.matrix = matrix
        self.index: dict[str, int] = {word: i for i, word in enumerate(self.words)}

    @classmethod
    def build(cls, vocabulary: Iterable[str], messenger: UIMessenger | None = None) -> "FeedbackTable":
        words = normalize_words(vocabulary)
        return cls(words, precompute_pattern_matrix(words, messenger))

    def __len__(self) -> int:
        return len(self.words)

    def word_index(self, word: str) -> int:
        try:
            return self.index[word.upper()]
        except KeyError:
            raise InvalidWordError(word, "not in the vocabulary") from None

    def code(self, guess: str, solution: str) -> int:
        return int(self.matrix[self.word_index(guess), self.word_index(solution)])

    def indices(self, words: Iterable[str]) -> np.ndarray:
        """Sorted, deduplicated table indices of a candidate set."""
        idxs = {self.word_index(word) for word in words}
        return np.array(sorted(idxs), dtype=np.int64)

    def words_at(self, idxs: np.ndarray) -> list[str]:
        return [self.words[i] for i in idxs]

    def partition(self, guess: str, idxs: np.ndarray) -> dict[int, np.ndarray]:
        """Candidate indices grouped by the feedback code guess induces."""
        row = self.matrix[self.word_index(guess), idxs]
        return {int(code): idxs[row == code] for code in np.unique(row)}

def get_pattern_matrix(words: list[str],
                       savefile: str | Path = PATTERN_MATRIX_FILE,
                       recompute: bool = False,
                       save: bool = True,
                       messenger: UIMessenger | None = None) -> FeedbackTable:
    """
    Retrieves the feedback table from file if it matches the vocabulary,
    otherwise it generates it and saves it to file.
    """
    messenger = messenger or ConsoleMessenger()
    words = normalize_words(words)
    savefile = Path(savefile)
    metafile = savefile.with_suffix(".json")
    vocab_hash = fingerprint(words)

    if not recompute and savefile.exists() and metafile.exists():
        meta = json.loads(metafile.read_text())
        if meta.get("fingerprint") == vocab_hash and meta.get("size") == len(words):
            messenger.log("Fetching pattern matrix from file")
            return FeedbackTable(words, np.load(savefile))
        messenger.log("Pattern matrix file is for a different vocabulary")

    messenger.log("No pattern matrix file found or recompute requested")
    table = FeedbackTable(words, precompute_pattern_matrix(words, messenger))
    if save:
        messenger.log("Saving pattern matrix to file")
        savefile.parent.mkdir(parents=True, exist_ok=True)
        np.save(savefile, table.matrix, allow_pickle=False)
        metafile.write_text(json.dumps({"fingerprint": vocab_hash, "size": len(words), "dtype": "uint8"}, indent=2))
    return table

### STATS ###
def print_stats(counts: dict[str, int], memo_entries: int, messenger: UIMessenger | None = None):
    """
    Prints formatted statistics from a search context's event counts.
    """
    messenger = messenger or ConsoleMessenger()
    padding = 45

    messenger.log("\nStats:")
    for name, description in EVENTS:
        value = counts.get(name, 0)
        messenger.log(f"{description:.<{padding}}{value:,}")
    messenger.log(f"{'Memo entries':.<{padding}}{memo_entries:,}")

def max_entropy(ncandidates: int) -> float:
    """Entropy of a perfect split, log2 of the candidate count."""
    return math.log2(ncandidates) if ncandidates > 0 else 0.0
