import pytest

from expectedwordle import FeedbackTable, ExpectimaxSolver, ResultStore


class RecordingMessenger:
    """Collects log lines instead of printing them."""
    def __init__(self):
        self.lines: list[str] = []
        self.progress_total = 0
        self.progress_done = 0

    def log(self, message: str) -> None:
        self.lines.append(message)

    def start_progress(self, total: int, desc: str = "") -> None:
        self.progress_total = total
        self.progress_done = 0

    def update_progress(self, advance: int = 1) -> None:
        self.progress_done += advance

    def stop_progress(self) -> None:
        pass


SMALL_VOCABULARY = [
    "BAKER", "BAKES", "BARES", "BASER", "CAKES", "CARES",
    "CASES", "FAKER", "MAKER", "RAKES", "TAKER", "WAKER",
]

SEED_VOCABULARY = [
    "CRANE", "SLATE", "TRACE", "CRATE", "GRATE", "PLATE", "SPARE", "SHARE",
    "STARE", "SNARE", "BLAME", "FLAME", "FRAME", "GRAPE", "SHAPE", "SHADE",
    "BRACE", "GRACE", "PLACE", "SPACE",
]


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def small_table(messenger):
    return FeedbackTable.build(SMALL_VOCABULARY, messenger)


@pytest.fixture
def solver(small_table, messenger):
    return ExpectimaxSolver(small_table, messenger=messenger)


@pytest.fixture
def store(tmp_path, messenger):
    result_store = ResultStore(f"sqlite:///{tmp_path / 'results.db'}", messenger=messenger)
    yield result_store
    result_store.close()
