"""
Two tier result cache for the expected-moves search.

`MemoCache` is the in-process tier keyed by (moves left, fingerprint).
`ResultStore` is the persistent tier, a relational store keyed by
(round, previous guess, feedback, fingerprint). The round, previous guess
and feedback columns are human readable metadata for lookups; the search
itself only relies on the fingerprint. Each row also records the search
depth it was computed with, and reuse is limited to rows of the same depth.
"""
import math
from pathlib import Path
from typing import Iterable

from sqlalchemy import (
    create_engine, Column, Integer, SmallInteger, String, Float, Text, Boolean, Index, select, delete, func
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from expectedwordle.config import DATABASE_URL, STARTING_WORDS_EXPECTED_MOVES
from expectedwordle.backend.errors import CacheWriteError
from expectedwordle.backend.helpers import GuessResult, fingerprint
from expectedwordle.backend.messenger import UIMessenger, ConsoleMessenger

MemoKey = tuple[int, str]

class MemoCache:
    """In-process memo of search results for one process run."""
    def __init__(self):
        self._entries: dict[MemoKey, GuessResult] = {}

    def get(self, key: MemoKey) -> tuple[GuessResult | None, bool]:
        value = self._entries.get(key)
        return value, value is not None

    def set(self, key: MemoKey, value: GuessResult) -> None:
        if not math.isfinite(value.expected_moves):
            raise ValueError(f"Refusing to memoize a non-finite result for {key}: {value}")
        self._entries[key] = value

    def nentries(self) -> int:
        return len(self._entries)

    def __contains__(self, key: MemoKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

### MODELS ###
Base = declarative_base()

class CandidateWord(Base):
    """Seeded vocabulary, one row per word."""
    __tablename__ = 'candidate_words'

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(5), nullable=False, unique=True)

    def __repr__(self):
        return f"<CandidateWord(id={self.id}, word='{self.word}')>"


class Opener(Base):
    """Round 1 guesses the precomputation starts from."""
    __tablename__ = 'round1'

    id = Column(Integer, primary_key=True, autoincrement=True)
    best_guess = Column(String(5), nullable=False, unique=True)
    expected_moves = Column(Float, nullable=False)
    exact = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Opener(best_guess='{self.best_guess}', expected_moves={self.expected_moves}, exact={self.exact})>"


class BestGuess(Base):
    """Best guess for the candidates left after (round, previous guess, feedback)."""
    __tablename__ = 'best_guesses'

    id = Column(Integer, primary_key=True, autoincrement=True)
    round = Column(Integer, nullable=False)
    previous_guess = Column(String(5), nullable=True)
    feedback = Column(SmallInteger, nullable=True)
    best_guess = Column(String(5), nullable=False)
    expected_moves = Column(Float, nullable=False)
    exact = Column(Boolean, nullable=False, default=True)
    # Search depth the value was computed with, NULL for rows from older stores
    moves_left = Column(SmallInteger, nullable=True)
    candidate_words = Column(Text, nullable=False)
    candidate_hash = Column(String(32), nullable=False)

    __table_args__ = (
        Index('idx_lookup', 'round', 'previous_guess', 'feedback', 'candidate_hash'),
        Index('idx_round_guess', 'round', 'previous_guess'),
    )

    def to_result(self) -> GuessResult:
        return GuessResult(self.best_guess, self.expected_moves, self.exact)

    def __repr__(self):
        return (f"<BestGuess(round={self.round}, previous_guess='{self.previous_guess}', "
                f"feedback={self.feedback}, best_guess='{self.best_guess}', expected_moves={self.expected_moves})>")


def _key_filter(round_number: int, previous_guess: str | None, feedback: int | None):
    # NULL never compares equal in SQL, so the optional columns need IS NULL
    return (
        BestGuess.round == round_number,
        BestGuess.previous_guess.is_(None) if previous_guess is None else BestGuess.previous_guess == previous_guess,
        BestGuess.feedback.is_(None) if feedback is None else BestGuess.feedback == feedback,
    )


class ResultStore:
    """
    Persistent best guess store backed by SQLAlchemy.

    Reads never raise: a database error is logged and reported as a miss.
    Writes raise CacheWriteError so the caller can retry just the write.
    """
    def __init__(self, url: str = DATABASE_URL, messenger: UIMessenger | None = None, echo: bool = False):
        self.messenger = messenger or ConsoleMessenger()
        _ensure_sqlite_dir(url)
        self.engine = create_engine(url, echo=echo)
        self.Session = sessionmaker(autoflush=False, bind=self.engine)
        self.init_database()

    def init_database(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    ### RESULT CACHE ###
    def get(self,
            round_number: int,
            previous_guess: str | None,
            feedback: int | None,
            candidate_hash: str,
            moves_left: int | None = None) -> GuessResult | None:
        """Stored result for the key. With moves_left, rows searched to another depth are misses."""
        try:
            with self.Session() as session:
                query = select(BestGuess).where(*_key_filter(round_number, previous_guess, feedback),
                                                BestGuess.candidate_hash == candidate_hash)
                if moves_left is not None:
                    query = query.where(BestGuess.moves_left == moves_left)
                row = session.execute(
                    query
                    .order_by(BestGuess.id.desc())
                    .limit(1)
                ).scalar_one_or_none()
                return row.to_result() if row is not None else None
        except SQLAlchemyError as e:
            self.messenger.log(f"[WARN] Result store read failed for round {round_number}, treating as a miss: {e}")
            return None

    def put(self,
            round_number: int,
            previous_guess: str | None,
            feedback: int | None,
            candidates: Iterable[str],
            best_guess: str,
            expected_moves: float,
            exact: bool = True,
            moves_left: int | None = None) -> None:
        """Insert or update the row for this key, last write wins."""
        words = sorted(candidates)
        if not math.isfinite(expected_moves):
            raise ValueError(f"Refusing to store non-finite expected moves for '{best_guess}' in round {round_number}.")
        candidate_hash = fingerprint(words)
        try:
            with self.Session.begin() as session:
                rows = session.execute(
                    select(BestGuess)
                    .where(*_key_filter(round_number, previous_guess, feedback), BestGuess.candidate_hash == candidate_hash)
                    .order_by(BestGuess.id)
                ).scalars().all()
                if rows:
                    # Collapse duplicates left by concurrent writers onto the first row
                    for extra in rows[1:]:
                        session.delete(extra)
                    target = rows[0]
                else:
                    target = BestGuess(round=round_number,
                                       previous_guess=previous_guess,
                                       feedback=feedback,
                                       candidate_words=",".join(words),
                                       candidate_hash=candidate_hash)
                    session.add(target)
                target.best_guess = best_guess
                target.expected_moves = float(expected_moves)
                target.exact = exact
                target.moves_left = moves_left
        except SQLAlchemyError as e:
            raise CacheWriteError(round_number, len(words), str(e)) from e

    def lookup(self, round_number: int, previous_guess: str | None, feedback: int | None) -> GuessResult | None:
        """Latest stored result for a round, previous guess and feedback, any candidate set."""
        try:
            with self.Session() as session:
                row = session.execute(
                    select(BestGuess)
                    .where(*_key_filter(round_number, previous_guess, feedback))
                    .order_by(BestGuess.id.desc())
                    .limit(1)
                ).scalar_one_or_none()
                return row.to_result() if row is not None else None
        except SQLAlchemyError as e:
            self.messenger.log(f"[WARN] Result store lookup failed for round {round_number}: {e}")
            return None

    def count(self, round_number: int | None = None) -> int:
        with self.Session() as session:
            query = select(func.count(BestGuess.id))
            if round_number is not None:
                query = query.where(BestGuess.round == round_number)
            return session.execute(query).scalar_one()

    ### SEEDING ###
    def replace_vocabulary(self,
                           words: Iterable[str],
                           openers: Iterable[str] | None = None,
                           expected_moves: float = STARTING_WORDS_EXPECTED_MOVES) -> int:
        """
        Replace every stored word and drop results computed for the old list.

        With openers the round 1 rows are replaced too, each holding the
        expected_moves estimate. Everything happens in one transaction, so a
        failed seed leaves the previous vocabulary and openers in place.
        """
        words = sorted(set(words))
        if openers is not None and not math.isfinite(expected_moves):
            raise ValueError(f"Refusing to seed openers with non-finite expected moves {expected_moves}.")
        try:
            with self.Session.begin() as session:
                session.execute(delete(BestGuess))
                session.execute(delete(CandidateWord))
                session.add_all(CandidateWord(word=word) for word in words)
                if openers is not None:
                    session.execute(delete(Opener))
                    session.add_all(Opener(best_guess=word, expected_moves=float(expected_moves), exact=False)
                                    for word in openers)
        except SQLAlchemyError as e:
            raise CacheWriteError(1, len(words), str(e)) from e
        return len(words)

    def vocabulary(self) -> list[str]:
        with self.Session() as session:
            return list(session.execute(select(CandidateWord.word).order_by(CandidateWord.word)).scalars())

    def set_opener(self, word: str, expected_moves: float, exact: bool = False) -> None:
        if not math.isfinite(expected_moves):
            raise ValueError(f"Refusing to store non-finite expected moves for opener '{word}'.")
        try:
            with self.Session.begin() as session:
                row = session.execute(select(Opener).where(Opener.best_guess == word)).scalar_one_or_none()
                if row is None:
                    row = Opener(best_guess=word)
                    session.add(row)
                row.expected_moves = float(expected_moves)
                row.exact = exact
        except SQLAlchemyError as e:
            raise CacheWriteError(1, 1, str(e)) from e

    def openers(self) -> list[GuessResult]:
        """Stored openers, best expected moves first."""
        with self.Session() as session:
            rows = session.execute(select(Opener).order_by(Opener.expected_moves, Opener.id)).scalars()
            return [GuessResult(row.best_guess, row.expected_moves, row.exact) for row in rows]


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == 'sqlite' and parsed.database and parsed.database != ':memory:':
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
