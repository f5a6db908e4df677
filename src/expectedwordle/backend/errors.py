class InvalidWordError(ValueError):
    """Raised when a word is not a 5 letter word known to the vocabulary."""
    def __init__(self, word: str, reason: str = "not a valid word"):
        self.word = word
        self.reason = reason
        super().__init__(f"The word '{word}' is {reason}.")

class WordLengthError(ValueError):
    """Raised when a guess and a solution of different lengths are compared."""
    def __init__(self, guess: str, solution: str):
        self.guess = guess
        self.solution = solution
        super().__init__(f"Cannot compare '{guess}' ({len(guess)} letters) with '{solution}' ({len(solution)} letters).")

class InvalidPatternError(ValueError):
    """Raised when the feedback pattern is invalid."""
    def __init__(self, pattern: object, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern '{pattern}': {reason}")

class EmptyCandidateSetError(ValueError):
    """Raised when the search is asked for a guess over no candidates."""
    def __init__(self, moves_left: int):
        self.moves_left = moves_left
        super().__init__(f"Cannot choose a guess from an empty candidate set (moves left: {moves_left}).")

class SearchPrunedError(RuntimeError):
    """Raised when no guess at the top of a search beats the context's bound."""
    def __init__(self, bound: float, ncandidates: int, guess: str | None = None):
        self.bound = bound
        self.ncandidates = ncandidates
        self.guess = guess
        subject = f"Opening '{guess}'" if guess else f"No guess over {ncandidates} candidates"
        super().__init__(f"{subject} cannot beat the current best of {bound:.5f} expected moves.")

class CacheWriteError(RuntimeError):
    """Raised when a result could not be written to the persistent store."""
    def __init__(self, round_number: int, ncandidates: int, reason: str):
        self.round_number = round_number
        self.ncandidates = ncandidates
        self.reason = reason
        super().__init__(f"Failed to store round {round_number} result for {ncandidates} candidates: {reason}")

class MissingSeedError(RuntimeError):
    """Raised when precomputation starts before the store has been seeded."""
    pass
