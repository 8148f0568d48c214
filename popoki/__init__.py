"""
Popoki: automated Wordle strategies, and a harness to benchmark them.

A strategy ("guesser") is given the history of its guesses so far, each with
the feedback received, and proposes the next guess. The strongest strategy
here keeps a pool of words still consistent with all feedback, and picks the
word that maximizes the expected information of the next feedback, weighted by
how common each word is.

Run self-tests with:

.. code-block:: bash

    pip install -e .[test]
    pytest

Play one game, or benchmark an algorithm across the dictionary:

.. code-block:: bash

    popoki play --answer right
    popoki play --answer right --algorithm PrunedHeuristic
    python -m popoki benchmark --algorithm EntropyScorer --nwords 200

The dictionary is a text file with one ``<word> <frequency>`` line per word.
Its order is the order in which candidates are considered, and so it decides
between equally good guesses.

"""  # noqa

# =============================================================================
# Imports
# =============================================================================

import argparse
from concurrent.futures import ProcessPoolExecutor
from contextlib import contextmanager
import csv
from enum import Enum
from itertools import product
from math import log2
import logging
from multiprocessing import cpu_count
import os
import re
from statistics import median, mean
import threading
import tempfile
from timeit import default_timer as timer
from typing import (
    Any, Dict, Generator, Iterable, Iterator, List, Optional, Sequence, Tuple,
    Type
)
import unittest
from unittest import mock

from colors import color  # pip install ansicolors
from cardinal_pythonlib.lists import chunks
from cardinal_pythonlib.logs import (
    configure_logger_for_colour,
    main_only_quicksetup_rootlogger,
)
from cardinal_pythonlib.maths_py import round_sf
import numpy as np
import ray

rootlog = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Paths
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_DICTIONARY = os.path.join(THIS_DIR, "dictionary.txt")

# Defining the game
WORDLEN = 5
N_PATTERNS = 3 ** WORDLEN
# Wordle allows six guesses. We allow more so that benchmark statistics
# aren't truncated.
MAX_ROUNDS = 32

# Fixed first guess, chosen offline for its expected information over the
# first two guesses (entropy of the first, then a weighted second guess).
OPENING_WORD = "trace"
# Returned if a pool ever empties; unreachable with consistent feedback.
FALLBACK_WORD = "cigar"

# Regular expressions for the dictionary and for feedback strings
WORD_REGEX = re.compile(rf"^[a-z]{{{WORDLEN}}}$")
FREQUENCY_REGEX = re.compile(r"^[0-9]+$")
CHAR_WRONG = "_"
CHAR_MISPLACED = "-"
CHAR_CORRECT = "="
_MASK_REGEX_STR = (
    rf"^[\{CHAR_WRONG}"
    rf"\{CHAR_MISPLACED}"
    rf"\{CHAR_CORRECT}]{{{WORDLEN}}}$"
)
MASK_REGEX = re.compile(_MASK_REGEX_STR)

# Colours and styles for displaying guesses, via the ansicolors package
COLOUR_WRONG = dict(fg="white", bg="black", style="bold")
COLOUR_MISPLACED = dict(fg="white", bg="yellow", style="bold")
COLOUR_CORRECT = dict(fg="white", bg="green", style="bold")

# Types
Word = str
DictionaryEntry = Tuple[Word, int]
Dictionary = Tuple[DictionaryEntry, ...]

# Defaults
DEFAULT_NPROC = cpu_count()
DEFAULT_SIG_FIGURES = 3
DEFAULT_PRUNE_TOP_N = 32


# =============================================================================
# Enums
# =============================================================================

class Correctness(Enum):
    """
    Feedback about one letter of a guess. Members are listed in the order
    :func:`patterns` enumerates them.
    """
    WRONG = 0  # grey
    MISPLACED = 1  # yellow
    CORRECT = 2  # green

    @property
    def plain_str(self) -> str:
        """
        Plain string representation.
        """
        if self == Correctness.WRONG:
            return CHAR_WRONG
        elif self == Correctness.MISPLACED:
            return CHAR_MISPLACED
        elif self == Correctness.CORRECT:
            return CHAR_CORRECT
        else:
            raise AssertionError("bug")

    @classmethod
    def from_char(cls, c: str) -> "Correctness":
        if c == CHAR_WRONG:
            return cls.WRONG
        elif c == CHAR_MISPLACED:
            return cls.MISPLACED
        elif c == CHAR_CORRECT:
            return cls.CORRECT
        raise ValueError(f"Bad feedback character: {c!r}")

    @classmethod
    def compute(cls, answer: Word, guess: Word) -> Tuple["Correctness", ...]:
        """
        Given the answer and a guess, return the feedback (mask) for each
        letter of the guess.

        Letters in the right place are marked first. Each remaining guess
        letter, left to right, then claims the first unclaimed matching letter
        of the answer, if there is one. So each answer letter accounts for at
        most one guess letter: guessing AACCC against AABBB gives ``==___``,
        and guessing AAABB against AZZAZ gives ``=-___``.
        """
        assert len(answer) == WORDLEN, f"Bad answer length: {answer!r}"
        assert len(guess) == WORDLEN, f"Bad guess length: {guess!r}"
        mask = [cls.WRONG] * WORDLEN
        used = [False] * WORDLEN
        for i in range(WORDLEN):
            if answer[i] == guess[i]:
                mask[i] = cls.CORRECT
                used[i] = True
        for i in range(WORDLEN):
            if mask[i] == cls.CORRECT:
                continue
            g = guess[i]
            for j in range(WORDLEN):
                if not used[j] and answer[j] == g:
                    mask[i] = cls.MISPLACED
                    used[j] = True
                    break
        return tuple(mask)


Mask = Tuple[Correctness, ...]

ALL_CORRECTNESS = (
    Correctness.WRONG,
    Correctness.MISPLACED,
    Correctness.CORRECT,
)


# =============================================================================
# Helper functions
# =============================================================================

# -----------------------------------------------------------------------------
# Masks
# -----------------------------------------------------------------------------

def patterns() -> Iterator[Mask]:
    """
    All 3 ** WORDLEN possible masks, in a fixed order. Each call gives a new
    iterator.
    """
    return product(ALL_CORRECTNESS, repeat=WORDLEN)


_MASK_INDICES: Dict[Mask, int] = {
    p: i for i, p in enumerate(patterns())
}


def mask_index(mask: Mask) -> int:
    """
    Position of a mask in the :func:`patterns` order, i.e. an integer in
    ``range(N_PATTERNS)``. Read as base 3 (WRONG = 0, MISPLACED = 1, CORRECT =
    2), the last letter is the least significant digit.
    """
    return _MASK_INDICES[tuple(mask)]


def mask_from_str(mask_str: str) -> Mask:
    """
    Reads a mask in our plain string format, e.g. ``"=-__="``.
    """
    if not MASK_REGEX.match(mask_str):
        raise ValueError(f"Bad mask string: {mask_str!r}")
    return tuple(Correctness.from_char(c) for c in mask_str)


def mask_to_str(mask: Mask) -> str:
    return "".join(c.plain_str for c in mask)


# -----------------------------------------------------------------------------
# Formatting
# -----------------------------------------------------------------------------

def colourful_char(x: str, feedback: Correctness) -> str:
    """
    Returns a string with ANSI codes to colour the character according to the
    feedback (and then reset afterwards).
    """
    if feedback == Correctness.WRONG:
        colour_params = COLOUR_WRONG
    elif feedback == Correctness.MISPLACED:
        colour_params = COLOUR_MISPLACED
    elif feedback == Correctness.CORRECT:
        colour_params = COLOUR_CORRECT
    else:
        raise AssertionError("bug")
    return color(x, **colour_params)


def prettylist(words: Iterable[Any]) -> str:
    """
    Formats a wordlist.
    """
    return ", ".join(str(x) for x in words)


def convert_sf(x: float, sig_fig: int = DEFAULT_SIG_FIGURES) -> float:
    """
    Formats a number to a certain number of significant figures.
    """
    if x == 0:
        return x
    return round_sf(x, sig_fig)


# -----------------------------------------------------------------------------
# Timing
# -----------------------------------------------------------------------------

@contextmanager
def time_section(name: str,
                 loglevel: int = logging.DEBUG) -> Generator[None, None, None]:
    start = timer()
    try:
        yield
    finally:
        end = timer()
        rootlog.log(loglevel, f"{name} took {end - start} s")


# =============================================================================
# Dictionary
# =============================================================================

class DictionaryError(ValueError):
    """
    The dictionary resource is malformed, or unusable (e.g. it lacks the
    opening word). We can't run without a valid one.
    """
    pass


def parse_dictionary_line(line: str,
                          line_num: int,
                          filename: str = "?") -> DictionaryEntry:
    """
    Parses a ``<word> <frequency>`` line.
    """
    elements = line.split(" ")
    if len(elements) != 2:
        raise DictionaryError(
            f"{filename}, line {line_num}: expected '<word> <frequency>', "
            f"got {line!r}")
    word, frequency = elements
    if not WORD_REGEX.match(word):
        raise DictionaryError(
            f"{filename}, line {line_num}: {word!r} is not a "
            f"{WORDLEN}-letter lower-case word")
    if not FREQUENCY_REGEX.match(frequency):
        raise DictionaryError(
            f"{filename}, line {line_num}: frequency {frequency!r} is not a "
            f"non-negative integer")
    return word, int(frequency)


def read_dictionary(filename: str) -> Dictionary:
    """
    Reads all words and their frequencies, in file order. Any bad line is
    fatal.
    """
    entries = []  # type: List[DictionaryEntry]
    with open(filename, "rt") as f:
        for line_num, line in enumerate(f, start=1):
            entries.append(
                parse_dictionary_line(line.rstrip("\r\n"), line_num, filename)
            )
    if not entries:
        raise DictionaryError(f"{filename}: no words")
    rootlog.info(f"Read {len(entries)} words from {filename}")
    return tuple(entries)


_dictionaries = {}  # type: Dict[str, Dictionary]
_dictionary_lock = threading.Lock()


def get_dictionary(filename: str = DEFAULT_DICTIONARY) -> Dictionary:
    """
    Returns the process-wide dictionary for this file, reading it on first
    access only. The result is shared by every caller and must not be
    modified (it's a tuple of tuples, so it can't be).
    """
    key = os.path.abspath(filename)
    with _dictionary_lock:
        if key not in _dictionaries:
            _dictionaries[key] = read_dictionary(key)
        return _dictionaries[key]


def dictionary_words(dictionary: Dictionary) -> List[Word]:
    return [word for word, _ in dictionary]


# =============================================================================
# Solving
# =============================================================================

# -----------------------------------------------------------------------------
# Guess
# -----------------------------------------------------------------------------

class Guess:
    """
    Represents a word that was guessed, and its feedback.
    """

    def __init__(self, word: Word, mask: Sequence[Correctness]) -> None:
        """
        Args:

            word: the word being guessed
            mask: character-by-character feedback
        """
        assert len(word) == WORDLEN, f"Bad word length: {word!r}"
        assert len(mask) == WORDLEN, f"Bad mask length: {mask!r}"
        self.word = word
        self.mask = tuple(mask)  # type: Mask

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    @classmethod
    def from_answer(cls, guess: Word, answer: Word) -> "Guess":
        """
        The feedback we'd get for ``guess`` if the answer were ``answer``.
        """
        return cls(guess, Correctness.compute(answer, guess))

    @classmethod
    def from_strings(cls, word: Word, mask_str: str) -> "Guess":
        """
        Use our internal string format to create a guess object.
        """
        return cls(word, mask_from_str(mask_str))

    # -------------------------------------------------------------------------
    # Compatibility
    # -------------------------------------------------------------------------

    def matches(self, candidate: Word) -> bool:
        """
        Could ``candidate`` be the answer, given this feedback?

        If guessing G against answer A gives mask M, then treating a
        candidate C as the answer must reproduce M exactly for C to remain
        possible.
        """
        return Correctness.compute(candidate, self.word) == self.mask

    def correct(self) -> bool:
        """
        Was the guess correct?
        """
        return all(c == Correctness.CORRECT for c in self.mask)

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Guess):
            return NotImplemented
        return self.word == other.word and self.mask == other.mask

    def __hash__(self) -> int:
        return hash((self.word, self.mask))

    # -------------------------------------------------------------------------
    # Displays and string representations
    # -------------------------------------------------------------------------

    @property
    def colourful_str(self) -> str:
        """
        Colourful string representation.
        """
        return "".join(
            colourful_char(c, f)
            for c, f in zip(self.word.upper(), self.mask)
        )

    @property
    def mask_str(self) -> str:
        return mask_to_str(self.mask)

    @property
    def plain_str(self) -> str:
        return f"{self.word}/{self.mask_str}"

    def __str__(self) -> str:
        """
        String representation. The colourful one leaves a colour residue for
        logs.
        """
        return self.plain_str

    def __repr__(self) -> str:
        return f"Guess({self.word!r}, {self.mask_str!r})"


def compatible_with_history(word: Word, history: Iterable[Guess]) -> bool:
    """
    Is a word consistent with every guess so far?
    """
    return all(g.matches(word) for g in history)


# -----------------------------------------------------------------------------
# CandidatePool
# -----------------------------------------------------------------------------

class PoolState(Enum):
    """
    Whether a pool is still reading the shared dictionary, or has its own
    copy.
    """
    BORROWED = 1
    OWNED = 2


class CandidatePool:
    """
    The dictionary entries still consistent with all feedback so far.

    Starts as a read-only view of a (shared) dictionary. The first time
    narrowing removes anything, the survivors are copied into a private list;
    from then on, narrowing edits that list in place. The dictionary itself is
    never touched, so any number of pools can share one.
    """

    def __init__(self, base: Dictionary) -> None:
        self._base = base
        self._owned = None  # type: Optional[List[DictionaryEntry]]

    @property
    def state(self) -> PoolState:
        return PoolState.BORROWED if self._owned is None else PoolState.OWNED

    @property
    def _entries(self) -> Sequence[DictionaryEntry]:
        return self._base if self._owned is None else self._owned

    def __iter__(self) -> Iterator[DictionaryEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, word: Word) -> bool:
        return any(w == word for w, _ in self._entries)

    def __str__(self) -> str:
        return (
            f"CandidatePool({len(self)} words, {self.state.name.lower()})"
        )

    @property
    def words(self) -> List[Word]:
        return dictionary_words(self._entries)

    def narrow(self, latest: Guess) -> int:
        """
        Removes every entry incompatible with the latest guess. Earlier
        guesses must already have been applied. Returns the number of entries
        removed.
        """
        if self._owned is None:
            base = self._base
            for i, (word, _) in enumerate(base):
                if not latest.matches(word):
                    self._owned = list(base[:i])
                    self._owned.extend(
                        e for e in base[i + 1:] if latest.matches(e[0])
                    )
                    return len(base) - len(self._owned)
            return 0
        n_before = len(self._owned)
        self._owned[:] = [e for e in self._owned if latest.matches(e[0])]
        return n_before - len(self._owned)

    def total_frequency(self) -> int:
        """
        Sum of the frequencies of all remaining words.
        """
        return sum(f for _, f in self._entries)


# -----------------------------------------------------------------------------
# Scoring potential guesses
# -----------------------------------------------------------------------------

class WordScore:
    """
    Class to represent the score for a potential word guess.
    """

    def __init__(self, word: Word, entropy: float, goodness: float,
                 sig_fig: Optional[int] = DEFAULT_SIG_FIGURES) -> None:
        """
        Args:
            word: the candidate guess
            entropy: expected information (bits) from the feedback
            goodness: the candidate's prior probability times ``entropy``
        """
        self.word = word
        self.entropy = entropy
        self.goodness = goodness
        self.sig_fig = sig_fig

    def __str__(self) -> str:
        if self.sig_fig is not None:
            goodness = convert_sf(self.goodness, self.sig_fig)
            entropy = convert_sf(self.entropy, self.sig_fig)
        else:
            goodness = self.goodness
            entropy = self.entropy
        return f"{self.word} ({goodness}; {entropy} bits)"


def feedback_entropy(guess: Word,
                     answers: Sequence[Word],
                     weights: np.ndarray,
                     total: float) -> float:
    """
    Shannon entropy (in bits) of the feedback to ``guess``, if the answer is
    one of ``answers`` with probability ``weights / total``.

    Each answer's mask goes into one of ``N_PATTERNS`` buckets; empty buckets
    contribute nothing.
    """
    codes = np.fromiter(
        (mask_index(Correctness.compute(a, guess)) for a in answers),
        dtype=np.intp,
        count=len(answers)
    )
    bucket_weights = np.bincount(codes, weights=weights, minlength=N_PATTERNS)
    p = bucket_weights[bucket_weights > 0] / total
    return float(-np.sum(p * np.log2(p)))


def best_word_score(candidates: Iterable[DictionaryEntry],
                    pool: Sequence[DictionaryEntry],
                    total: int = None) -> Optional[WordScore]:
    """
    Scores each candidate against the pool of possible answers, and returns
    the best, or ``None`` if there are no candidates or no possible answers.

    Goodness is the candidate's own probability of being the answer times the
    entropy of its feedback. Only a strictly better score displaces the
    current best, so ties go to the earliest candidate.

    ``total`` is the pool's total frequency, if the caller already has it.
    If it is zero, every word is treated as equally likely.
    """
    if not pool:
        return None
    answers = dictionary_words(pool)
    weights = np.array([f for _, f in pool], dtype=np.float64)
    total = float(weights.sum() if total is None else total)
    uniform = total <= 0
    if uniform:
        weights = np.ones(len(pool), dtype=np.float64)
        total = float(len(pool))
    best = None  # type: Optional[WordScore]
    for word, frequency in candidates:
        entropy = feedback_entropy(word, answers, weights, total)
        prior = (1 if uniform else frequency) / total
        goodness = prior * entropy
        if best is None or goodness > best.goodness:
            best = WordScore(word, entropy, goodness)
    return best


def letter_coverage_scores(pool: Sequence[DictionaryEntry]) -> List[int]:
    """
    A cheap score per pool entry: for each distinct letter of the word, the
    total frequency of pool words containing that letter, summed.

    Counts each letter only once per word, e.g. THREE contributes only one E.
    """
    letter_weights = {}  # type: Dict[str, int]
    for word, frequency in pool:
        for letter in set(word):
            letter_weights[letter] = letter_weights.get(letter, 0) + frequency
    return [
        sum(letter_weights[letter] for letter in set(word))
        for word, _ in pool
    ]


# -----------------------------------------------------------------------------
# Guessers
# -----------------------------------------------------------------------------

class Guesser:
    """
    Base class for guessing strategies.

    A guesser is used for one game only. It is told the full history each
    round, but may rely on it growing by exactly one guess per call after the
    first.
    """
    OPENING_WORD = OPENING_WORD
    FALLBACK_WORD = FALLBACK_WORD

    def __init__(self, dictionary: Dictionary = None) -> None:
        """
        Args:
            dictionary: words to choose from; by default, the process-wide
                dictionary, read when first needed
        """
        self._dictionary = dictionary

    @property
    def dictionary(self) -> Dictionary:
        if self._dictionary is None:
            self._dictionary = get_dictionary()
        return self._dictionary

    def guess(self, history: Sequence[Guess]) -> Word:
        """
        Overridden to implement a specific strategy. Returns the next word to
        guess.
        """
        raise NotImplementedError

    def remaining(self) -> Sequence[DictionaryEntry]:
        """
        The entries this guesser still considers possible answers.
        """
        raise NotImplementedError

    def choose(self, pool: Sequence[DictionaryEntry],
               candidates: Iterable[DictionaryEntry] = None,
               total: int = None) -> Word:
        """
        Picks the best-scoring word by entropy, from the candidates (by
        default, the whole pool). ``total`` is the pool's total frequency,
        computed here if not given.
        """
        best = best_word_score(
            pool if candidates is None else candidates, pool, total)
        if best is None:
            rootlog.warning(f"{type(self).__name__}: no candidates left; "
                            f"guessing {self.FALLBACK_WORD}")
            return self.FALLBACK_WORD
        rootlog.debug(f"{type(self).__name__}: best of {len(pool)} is {best}")
        return best.word


class EntropyScorer(Guesser):
    """
    Narrows a copy-on-write pool by the latest feedback, then guesses the word
    with the highest frequency-weighted expected information.
    """

    def __init__(self, dictionary: Dictionary = None) -> None:
        super().__init__(dictionary)
        self.pool = CandidatePool(self.dictionary)

    def remaining(self) -> Sequence[DictionaryEntry]:
        return list(self.pool)

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        self.pool.narrow(history[-1])
        return self.choose(list(self.pool),
                           total=self.pool.total_frequency())


class NaiveFilter(Guesser):
    """
    Copies the dictionary up front, and makes a new filtered list every
    round.
    """

    def __init__(self, dictionary: Dictionary = None) -> None:
        super().__init__(dictionary)
        self.candidates = list(self.dictionary)

    def remaining(self) -> Sequence[DictionaryEntry]:
        return self.candidates

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        latest = history[-1]
        self.candidates = [
            e for e in self.candidates if latest.matches(e[0])
        ]
        return self.choose(self.candidates)


class PreallocatedFilter(Guesser):
    """
    Keeps one buffer the size of the dictionary. Survivors are moved to the
    front, in order, and only the first ``n_live`` slots are meaningful.
    """

    def __init__(self, dictionary: Dictionary = None) -> None:
        super().__init__(dictionary)
        self.buffer = list(self.dictionary)
        self.n_live = len(self.buffer)

    def remaining(self) -> Sequence[DictionaryEntry]:
        return self.buffer[:self.n_live]

    def _compact(self, latest: Guess) -> None:
        buffer = self.buffer
        n = 0
        for i in range(self.n_live):
            entry = buffer[i]
            if latest.matches(entry[0]):
                buffer[n] = entry
                n += 1
        self.n_live = n

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        self._compact(history[-1])
        return self.choose(self.remaining())


class InPlaceRemovalFilter(Guesser):
    """
    Copies the dictionary up front, and deletes incompatible entries from
    that list in place.
    """

    def __init__(self, dictionary: Dictionary = None) -> None:
        super().__init__(dictionary)
        self.candidates = list(self.dictionary)

    def remaining(self) -> Sequence[DictionaryEntry]:
        return self.candidates

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        latest = history[-1]
        # Backwards, so deletion doesn't disturb positions still to visit.
        for i in range(len(self.candidates) - 1, -1, -1):
            if not latest.matches(self.candidates[i][0]):
                del self.candidates[i]
        return self.choose(self.candidates)


class LazyStaticFilter(Guesser):
    """
    Touches neither the dictionary nor a pool until feedback first arrives,
    then works like :class:`EntropyScorer`. With the default dictionary, that
    first access is also what loads it, once, for the whole process.
    """

    def __init__(self, dictionary: Dictionary = None) -> None:
        super().__init__(dictionary)
        self.pool = None  # type: Optional[CandidatePool]

    def _get_pool(self) -> CandidatePool:
        if self.pool is None:
            self.pool = CandidatePool(self.dictionary)
        return self.pool

    def remaining(self) -> Sequence[DictionaryEntry]:
        return list(self._get_pool())

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        pool = self._get_pool()
        pool.narrow(history[-1])
        return self.choose(list(pool), total=pool.total_frequency())


class PrunedHeuristic(Guesser):
    """
    Like :class:`EntropyScorer`, but only the ``top_n`` candidates by letter
    coverage (see :func:`letter_coverage_scores`) are scored by entropy.
    Faster on big pools; sometimes takes an extra guess.
    """

    def __init__(self, dictionary: Dictionary = None,
                 top_n: int = DEFAULT_PRUNE_TOP_N) -> None:
        super().__init__(dictionary)
        assert top_n > 0
        self.top_n = top_n
        self.pool = CandidatePool(self.dictionary)

    def remaining(self) -> Sequence[DictionaryEntry]:
        return list(self.pool)

    def shortlist(self, pool: Sequence[DictionaryEntry]) \
            -> List[DictionaryEntry]:
        """
        The candidates worth scoring properly, in pool order.
        """
        if len(pool) <= self.top_n:
            return list(pool)
        scores = letter_coverage_scores(pool)
        # sorted() is stable, so equal scores stay in pool order
        ranked = sorted(range(len(pool)), key=lambda i: -scores[i])
        return [pool[i] for i in sorted(ranked[:self.top_n])]

    def guess(self, history: Sequence[Guess]) -> Word:
        if not history:
            return self.OPENING_WORD
        self.pool.narrow(history[-1])
        pool = list(self.pool)
        return self.choose(pool, self.shortlist(pool),
                           self.pool.total_frequency())


ALGORITHMS = {
    "EntropyScorer": EntropyScorer,
    "NaiveFilter": NaiveFilter,
    "PreallocatedFilter": PreallocatedFilter,
    "InPlaceRemovalFilter": InPlaceRemovalFilter,
    "LazyStaticFilter": LazyStaticFilter,
    "PrunedHeuristic": PrunedHeuristic,
}  # type: Dict[str, Type[Guesser]]

DEFAULT_ALGORITHM = "EntropyScorer"  # it's the best


# =============================================================================
# Playing
# =============================================================================

def autosolve(answer: Word,
              guesser: Guesser,
              dictionary: Dictionary = None,
              max_rounds: int = MAX_ROUNDS,
              log: logging.Logger = None) \
        -> Tuple[Optional[int], List[Guess]]:
    """
    Plays one game. Returns the number of guesses taken (``None`` if the
    guesser didn't get there within ``max_rounds``), and the history of
    guesses (excluding the final, correct one).

    A guess that isn't in the dictionary is a bug in the guesser, and raises
    :exc:`AssertionError`. The dictionary defaults to the guesser's own, or
    the process-wide one.
    """
    log = log or rootlog
    if dictionary is None:
        if isinstance(guesser, Guesser):
            dictionary = guesser.dictionary
        else:
            dictionary = get_dictionary()
    valid_words = set(dictionary_words(dictionary))
    history = []  # type: List[Guess]
    for i in range(1, max_rounds + 1):
        guess = guesser.guess(tuple(history))
        if guess == answer:
            log.debug(f"{answer}: solved in {i} guesses: "
                      f"{prettylist(history)}")
            return i, history
        if guess not in valid_words:
            raise AssertionError(
                f"{type(guesser).__name__} guessed {guess!r}, which is not "
                f"in the dictionary")
        history.append(Guess.from_answer(guess, answer))
        log.debug(f"{answer}: round {i}: {history[-1]}")
    log.warning(f"{answer}: not solved in {max_rounds} guesses")
    return None, history


def play(answer: Word,
         guesser: Guesser,
         dictionary: Dictionary = None,
         max_rounds: int = MAX_ROUNDS) -> Optional[int]:
    """
    Plays one game; returns the number of guesses taken, or ``None`` on
    failure.
    """
    n_guesses, _ = autosolve(answer, guesser, dictionary, max_rounds)
    return n_guesses


def check_opening_word(dictionary: Dictionary,
                       algorithm_name: str = DEFAULT_ALGORITHM) -> None:
    """
    Every game opens with the algorithm's fixed opening word, which must be a
    dictionary word; otherwise every game would fail. Checks that up front.

    Raises:
        :exc:`DictionaryError` if it is missing
    """
    opening_word = ALGORITHMS[algorithm_name].OPENING_WORD
    if opening_word not in set(dictionary_words(dictionary)):
        msg = (f"Opening word {opening_word!r} of {algorithm_name} is not in "
               f"the dictionary; no game could be played")
        rootlog.error(msg)
        raise DictionaryError(msg)


def show_game(answer: Word,
              dictionary_filename: str = DEFAULT_DICTIONARY,
              algorithm_name: str = DEFAULT_ALGORITHM) -> Optional[int]:
    """
    Plays one game and reports it with coloured feedback.
    """
    dictionary = get_dictionary(dictionary_filename)
    if answer not in set(dictionary_words(dictionary)):
        raise ValueError(f"{answer!r} is not in the dictionary")
    check_opening_word(dictionary, algorithm_name)
    guesser = ALGORITHMS[algorithm_name](dictionary)
    with time_section(f"Game for {answer}", loglevel=logging.INFO):
        n_guesses, history = autosolve(answer, guesser, dictionary)
    pretty = prettylist(g.colourful_str for g in history)
    if n_guesses is None:
        rootlog.info(f"{algorithm_name} failed on {answer}. Guesses: {pretty}")
    else:
        rootlog.info(f"{algorithm_name} found {answer} in {n_guesses} "
                     f"guesses. Wrong guesses: {pretty or 'none'}")
    return n_guesses


# -----------------------------------------------------------------------------
# Performance testing framework to compare algorithms
# -----------------------------------------------------------------------------

def autosolve_single_arg(args: Tuple[str, str, str]) -> Optional[int]:
    """
    Version of :func:`play` that takes a single argument, which is
    necessary for some of the parallel processing map functions.

    The argument is a tuple: answer, dictionary_filename, algorithm_name.
    Each call gets a fresh guesser.
    """
    answer, dictionary_filename, algorithm_name = args
    dictionary = get_dictionary(dictionary_filename)
    guesser = ALGORITHMS[algorithm_name](dictionary)
    return play(answer, guesser, dictionary)


@ray.remote
def autosolve_ray(answers: List[str],
                  dictionary_filename: str,
                  algorithm_name: str,
                  loglevel: int = logging.INFO) \
        -> List[Tuple[str, Optional[int]]]:
    """
    Ray version! Batched.
    """
    raylog = logging.getLogger(__name__)
    configure_logger_for_colour(raylog, level=loglevel)
    results = []  # type: List[Tuple[str, Optional[int]]]
    for answer in answers:
        with time_section("Word"):
            n_guesses = autosolve_single_arg(
                (answer, dictionary_filename, algorithm_name)
            )
        results.append((answer, n_guesses))
    return results


def summarize_performance(algorithm_name: str,
                          guess_counts: Sequence[Optional[int]]) \
        -> Dict[str, Any]:
    """
    Summary statistics across games. Failures (``None``) count against
    ``prop_success`` but are excluded from the other statistics.
    """
    n_tests = len(guess_counts)
    assert n_tests > 0, "No words!"
    successes = [n for n in guess_counts if n is not None]
    summary = dict(
        algorithm=algorithm_name,
        n_games=n_tests,
        prop_success=len(successes) / n_tests,
    )  # type: Dict[str, Any]
    if successes:
        summary.update(
            min=min(successes),
            median=median(successes),
            mean=mean(successes),
            max=max(successes),
        )
    return summary


def measure_algorithm_performance(
        dictionary_filename: str,
        output_filename: str,
        nwords: int = None,
        nproc: int = DEFAULT_NPROC,
        algorithm_name: str = DEFAULT_ALGORITHM,
        chunks_per_worker: int = 5,
        loglevel: int = logging.INFO,
        use_ray: bool = True) -> Dict[str, Any]:
    """
    Plays one game for each dictionary word as the answer (or for the first
    ``nwords``), writes each result to a CSV file, and reports performance
    statistics.
    """
    dictionary = get_dictionary(dictionary_filename)
    check_opening_word(dictionary, algorithm_name)
    test_words = dictionary_words(dictionary)
    if nwords is not None:
        test_words = test_words[:nwords]
    n_words = len(test_words)
    guess_counts = []  # type: List[Optional[int]]
    with open(output_filename, "wt", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["algorithm", "word", "n_guesses"])

        def record(word: str, n_guesses: Optional[int]) -> None:
            writer.writerow([
                algorithm_name, word, "" if n_guesses is None else n_guesses
            ])
            f.flush()  # nice to be able to follow the output live
            guess_counts.append(n_guesses)

        if nproc <= 1:
            # -----------------------------------------------------------------
            # Serial method
            # -----------------------------------------------------------------
            for word in test_words:
                record(word, autosolve_single_arg(
                    (word, dictionary_filename, algorithm_name)
                ))

        elif use_ray:
            # -----------------------------------------------------------------
            # Ray method
            # -----------------------------------------------------------------
            rootlog.info("Starting Ray")
            ray.init(num_cpus=nproc)
            try:
                words_per_chunk = max(
                    1, n_words // (nproc * chunks_per_worker))
                pending_jobs = [
                    autosolve_ray.remote(answers, dictionary_filename,
                                         algorithm_name, loglevel=loglevel)
                    for answers in chunks(test_words, words_per_chunk)
                ]
                rootlog.info(f"Submitted {len(pending_jobs)} jobs, aiming "
                             f"for {words_per_chunk} words per job")
                while len(pending_jobs):
                    rootlog.debug(f"Waiting for a job to complete "
                                  f"({len(pending_jobs)} running)...")
                    done_jobs, pending_jobs = ray.wait(pending_jobs)
                    for done_job in done_jobs:
                        results = ray.get(done_job)
                        rootlog.debug(f"Retrieved {len(results)} results")
                        for word, n_guesses in results:
                            record(word, n_guesses)
            finally:
                ray.shutdown()

        else:
            # -----------------------------------------------------------------
            # ProcessPoolExecutor method
            # -----------------------------------------------------------------
            # Each worker process reads the dictionary once, on its first
            # game.
            arglist = (
                (word, dictionary_filename, algorithm_name)
                for word in test_words
            )
            n_chunks = nproc * chunks_per_worker
            chunksize = max(1, n_words // n_chunks)
            rootlog.debug(
                f"Aiming for {chunks_per_worker} chunks/worker with {nproc} "
                f"workers and thus {n_chunks} chunks: for {n_words} words, "
                f"chunksize = {chunksize} words/chunk"
            )
            with ProcessPoolExecutor(nproc) as executor:
                for word, n_guesses in zip(
                        test_words,
                        executor.map(autosolve_single_arg, arglist,
                                     chunksize=chunksize)):
                    record(word, n_guesses)

    summary = summarize_performance(algorithm_name, guess_counts)
    tested = (
        f"all {summary['n_games']} known" if nwords is None
        else f"the first {summary['n_games']}"
    )
    if "mean" in summary:
        rootlog.info(
            f"Across {tested} words, method {algorithm_name} took: "
            f"min {summary['min']}, "
            f"median {summary['median']}, "
            f"mean {convert_sf(summary['mean'])}, "
            f"max {summary['max']} guesses; "
            f"proportion solved "
            f"{convert_sf(summary['prop_success'])}"
        )
    else:
        rootlog.warning(f"Across {tested} words, method {algorithm_name} "
                        f"solved none")
    return summary


# =============================================================================
# Self-testing
# =============================================================================

C = Correctness.CORRECT
M = Correctness.MISPLACED
W = Correctness.WRONG

TEST_DICTIONARY = (
    ("which", 2500000),
    ("there", 770000),
    ("right", 148000),
    ("think", 120000),
    ("place", 61000),
    ("world", 58000),
    ("great", 55000),
    ("house", 47000),
    ("water", 38000),
    ("point", 33000),
    ("state", 32000),
    ("light", 21000),
    ("story", 17000),
    ("price", 16000),
    ("wrong", 15900),
    ("heart", 15000),
    ("watch", 14000),
    ("crane", 12500),
    ("slate", 12300),
    ("crate", 12100),
    ("train", 12000),
    ("trace", 11800),
    ("grace", 11500),
    ("brace", 11300),
    ("tread", 11100),
    ("cigar", 11000),
    ("rebut", 10900),
    ("sissy", 10800),
    ("humph", 10700),
    ("awake", 10600),
    ("blush", 10500),
    ("focal", 10400),
)  # type: Dictionary

TEST_WORDS = dictionary_words(TEST_DICTIONARY)

STORAGE_VARIANTS = (
    NaiveFilter,
    PreallocatedFilter,
    InPlaceRemovalFilter,
    LazyStaticFilter,
)


class ScriptedGuesser:
    """
    Guesses the given words in turn, repeating the last one forever.
    """
    def __init__(self, words: Sequence[str]) -> None:
        self.words = words

    def guess(self, history: Sequence[Guess]) -> str:
        return self.words[min(len(history), len(self.words) - 1)]


class CountingPool(CandidatePool):
    """
    Counts calls to :meth:`total_frequency`.
    """
    def __init__(self, base: Dictionary) -> None:
        super().__init__(base)
        self.n_total_calls = 0

    def total_frequency(self) -> int:
        self.n_total_calls += 1
        return super().total_frequency()


def write_dictionary(filename: str, dictionary: Dictionary) -> str:
    with open(filename, "wt") as f:
        for word, frequency in dictionary:
            f.write(f"{word} {frequency}\n")
    return filename


def guesses_made(answer: str, guesser) -> List[str]:
    n_guesses, history = autosolve(answer, guesser, TEST_DICTIONARY)
    assert n_guesses is not None, f"{type(guesser).__name__} failed on {answer}"  # noqa
    return [g.word for g in history] + [answer]


# -----------------------------------------------------------------------------
# Masks
# -----------------------------------------------------------------------------

class TestCorrectness(unittest.TestCase):
    def test_all_green(self) -> None:
        self.assertEqual(Correctness.compute("abcde", "abcde"),
                         (C, C, C, C, C))

    def test_all_gray(self) -> None:
        self.assertEqual(Correctness.compute("abcde", "fghij"),
                         (W, W, W, W, W))

    def test_all_yellow(self) -> None:
        self.assertEqual(Correctness.compute("abcde", "eabcd"),
                         (M, M, M, M, M))

    def test_repeat_green(self) -> None:
        self.assertEqual(Correctness.compute("aabbb", "aaccc"),
                         (C, C, W, W, W))

    def test_repeat_yellow(self) -> None:
        self.assertEqual(Correctness.compute("aabbb", "ccaac"),
                         (W, W, M, M, W))

    def test_repeat_some_green(self) -> None:
        self.assertEqual(Correctness.compute("aabbb", "caacc"),
                         (W, C, M, W, W))

    def test_only_one_yellow(self) -> None:
        self.assertEqual(Correctness.compute("azzaz", "aaabb"),
                         (C, M, W, W, W))

    def test_only_one_green(self) -> None:
        self.assertEqual(Correctness.compute("baccc", "aaddd"),
                         (W, C, W, W, W))

    def test_only_one_gray(self) -> None:
        self.assertEqual(Correctness.compute("abcde", "aacde"),
                         (C, W, C, C, C))

    def test_yellow_claims_later_answer_position(self) -> None:
        # The first A claims answer position 2; the B guessed at position 2
        # must still be scored.
        self.assertEqual(Correctness.compute("bcaxx", "axbyy"),
                         (M, M, M, W, W))

    def test_real_words(self) -> None:
        self.assertEqual(mask_to_str(Correctness.compute("humor", "honor")),
                         "=__==")
        self.assertEqual(mask_to_str(Correctness.compute("pause", "eerie")),
                         "____=")
        self.assertEqual(mask_to_str(Correctness.compute("pause", "leper")),
                         "_--__")

    def test_deterministic(self) -> None:
        for answer in TEST_WORDS:
            for guess in TEST_WORDS:
                self.assertEqual(Correctness.compute(answer, guess),
                                 Correctness.compute(answer, guess))

    def test_bad_length(self) -> None:
        with self.assertRaises(AssertionError):
            Correctness.compute("abcd", "abcde")
        with self.assertRaises(AssertionError):
            Correctness.compute("abcde", "abcdef")


class TestPatterns(unittest.TestCase):
    def test_all_distinct(self) -> None:
        all_patterns = list(patterns())
        self.assertEqual(len(all_patterns), N_PATTERNS)
        self.assertEqual(len(set(all_patterns)), N_PATTERNS)

    def test_restartable(self) -> None:
        self.assertEqual(list(patterns()), list(patterns()))

    def test_mask_index_is_bijection(self) -> None:
        indices = {mask_index(p) for p in patterns()}
        self.assertEqual(indices, set(range(N_PATTERNS)))

    def test_mask_index_follows_pattern_order(self) -> None:
        for i, p in enumerate(patterns()):
            self.assertEqual(mask_index(p), i)

    def test_mask_index_values(self) -> None:
        self.assertEqual(mask_index((W, W, W, W, W)), 0)
        self.assertEqual(mask_index((W, W, W, W, M)), 1)
        self.assertEqual(mask_index((M, W, W, W, W)), 81)
        self.assertEqual(mask_index((C, C, C, C, C)), N_PATTERNS - 1)

    def test_mask_strings(self) -> None:
        mask = mask_from_str("=-__=")
        self.assertEqual(mask, (C, M, W, W, C))
        self.assertEqual(mask_to_str(mask), "=-__=")
        for bad in ("=-__", "=-__=_", "=-x_="):
            with self.assertRaises(ValueError):
                mask_from_str(bad)


# -----------------------------------------------------------------------------
# Guesses and compatibility
# -----------------------------------------------------------------------------

class TestGuess(unittest.TestCase):
    def test_symmetry(self) -> None:
        for answer in TEST_WORDS:
            for guess in TEST_WORDS:
                clue = Guess.from_answer(guess, answer)
                assert clue.matches(answer), (
                    f"Answer {answer} is incompatible with its own "
                    f"feedback {clue}"
                )

    def test_whole_mask_must_match(self) -> None:
        clue = Guess.from_strings("trace", "=____")
        self.assertTrue(clue.matches("think"))
        # T in the right place, but R is present too
        self.assertFalse(clue.matches("tread"))
        # Would need every letter to be marked wrong
        self.assertFalse(clue.matches("right"))

    def test_history_is_conjunction(self) -> None:
        history = [
            Guess.from_answer("trace", "right"),
            Guess.from_answer("wrong", "right"),
        ]
        self.assertTrue(compatible_with_history("right", history))
        self.assertFalse(compatible_with_history("trace", history))
        self.assertFalse(compatible_with_history("wrong", history))
        self.assertTrue(compatible_with_history("anything", []))

    def test_correct(self) -> None:
        self.assertTrue(Guess.from_answer("right", "right").correct())
        self.assertFalse(Guess.from_answer("wrong", "right").correct())

    def test_equality(self) -> None:
        self.assertEqual(Guess.from_answer("trace", "crate"),
                         Guess.from_strings("trace", "-==-="))
        self.assertNotEqual(Guess.from_answer("trace", "crate"),
                            Guess.from_answer("trace", "grace"))
        self.assertEqual(len({Guess.from_strings("trace", "-----"),
                              Guess.from_strings("trace", "-----")}), 1)

    def test_bad_length(self) -> None:
        with self.assertRaises(AssertionError):
            Guess("abcd", (W, W, W, W, W))
        with self.assertRaises(AssertionError):
            Guess("abcde", (W, W, W, W))

    def test_strings(self) -> None:
        clue = Guess.from_strings("trace", "=-___")
        self.assertEqual(str(clue), "trace/=-___")
        self.assertIn("T", clue.colourful_str)


# -----------------------------------------------------------------------------
# Dictionary
# -----------------------------------------------------------------------------

class TestDictionary(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.tempdir = self._tempdir.name

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _write(self, name: str, contents: str) -> str:
        filename = os.path.join(self.tempdir, name)
        with open(filename, "wt") as f:
            f.write(contents)
        return filename

    def test_read_preserves_order(self) -> None:
        filename = self._write("good.txt", "zebra 5\napple 100\nmango 0\n")
        self.assertEqual(
            read_dictionary(filename),
            (("zebra", 5), ("apple", 100), ("mango", 0))
        )

    def test_malformed_lines(self) -> None:
        for line in ("apple", "apple 1 2", "appl 1", "apples 1", "APPLE 1",
                     "apple x", "apple -1", "apple  1", ""):
            with self.subTest(line=line):
                with self.assertRaises(DictionaryError):
                    parse_dictionary_line(line, 1)

    def test_malformed_file_is_fatal(self) -> None:
        filename = self._write("bad.txt", "apple 1\nbanana 2\ncherry 3\n")
        with self.assertRaises(DictionaryError):
            read_dictionary(filename)

    def test_blank_line_is_fatal(self) -> None:
        filename = self._write("blank.txt", "apple 1\n\nmango 2\n")
        with self.assertRaises(DictionaryError):
            read_dictionary(filename)

    def test_empty_file_is_fatal(self) -> None:
        filename = self._write("empty.txt", "")
        with self.assertRaises(DictionaryError):
            read_dictionary(filename)

    def test_loaded_once(self) -> None:
        filename = self._write("once.txt", "apple 1\nmango 2\n")
        first = get_dictionary(filename)
        # Changes after the first read are not seen.
        self._write("once.txt", "lemon 1\n")
        self.assertIs(get_dictionary(filename), first)
        self.assertEqual(dictionary_words(first), ["apple", "mango"])

    def test_bundled_dictionary(self) -> None:
        # Shipped as package data, so present wherever the package is
        # installed.
        self.assertEqual(os.path.dirname(DEFAULT_DICTIONARY),
                         os.path.dirname(os.path.abspath(__file__)))
        self.assertTrue(os.path.isfile(DEFAULT_DICTIONARY),
                        f"Missing {DEFAULT_DICTIONARY}")
        words = dictionary_words(get_dictionary(DEFAULT_DICTIONARY))
        self.assertGreater(len(words), len(TEST_WORDS))
        self.assertIn(OPENING_WORD, words)
        self.assertIn(FALLBACK_WORD, words)


# -----------------------------------------------------------------------------
# Candidate pool
# -----------------------------------------------------------------------------

class TestCandidatePool(unittest.TestCase):
    def test_starts_borrowed(self) -> None:
        pool = CandidatePool(TEST_DICTIONARY)
        self.assertEqual(pool.state, PoolState.BORROWED)
        self.assertEqual(list(pool), list(TEST_DICTIONARY))
        self.assertEqual(pool.total_frequency(),
                         sum(f for _, f in TEST_DICTIONARY))

    def test_no_removal_stays_borrowed(self) -> None:
        pool = CandidatePool(TEST_DICTIONARY)
        # No test word contains a Q.
        self.assertEqual(pool.narrow(Guess.from_strings("qqqqq", "_____")), 0)
        self.assertEqual(pool.state, PoolState.BORROWED)
        self.assertEqual(len(pool), len(TEST_DICTIONARY))

    def test_removal_takes_ownership(self) -> None:
        pool = CandidatePool(TEST_DICTIONARY)
        n_removed = pool.narrow(Guess.from_answer("trace", "right"))
        self.assertGreater(n_removed, 0)
        self.assertEqual(pool.state, PoolState.OWNED)
        self.assertEqual(len(pool), len(TEST_DICTIONARY) - n_removed)
        self.assertIn("right", pool)
        self.assertNotIn("trace", pool)
        # Order is kept.
        self.assertEqual(pool.words,
                         [w for w in TEST_WORDS if w in pool.words])
        self.assertEqual(pool.total_frequency(),
                         sum(f for _, f in pool))

    def test_owned_pool_narrows_in_place(self) -> None:
        pool = CandidatePool(TEST_DICTIONARY)
        pool.narrow(Guess.from_answer("trace", "crate"))
        owned = pool._owned
        n_before = len(pool)
        pool.narrow(Guess.from_answer("crane", "crate"))
        self.assertIs(pool._owned, owned)
        self.assertLessEqual(len(pool), n_before)
        self.assertIn("crate", pool)

    def test_shared_base_is_untouched(self) -> None:
        base = tuple(TEST_DICTIONARY)
        a = CandidatePool(base)
        b = CandidatePool(base)
        a.narrow(Guess.from_answer("trace", "right"))
        self.assertEqual(base, TEST_DICTIONARY)
        self.assertEqual(b.state, PoolState.BORROWED)
        self.assertEqual(len(b), len(TEST_DICTIONARY))

    def test_empty(self) -> None:
        pool = CandidatePool(TEST_DICTIONARY)
        pool.narrow(Guess.from_strings("right", "====="))
        pool.narrow(Guess.from_strings("right", "_____"))
        self.assertEqual(len(pool), 0)
        self.assertEqual(pool.total_frequency(), 0)


# -----------------------------------------------------------------------------
# Scoring
# -----------------------------------------------------------------------------

class TestScoring(unittest.TestCase):
    def test_entropy_bounds(self) -> None:
        weights = np.array([f for _, f in TEST_DICTIONARY], dtype=np.float64)
        total = float(weights.sum())
        for word in TEST_WORDS:
            entropy = feedback_entropy(word, TEST_WORDS, weights, total)
            self.assertGreaterEqual(entropy, 0)
            self.assertLessEqual(entropy, log2(N_PATTERNS))

    def test_single_answer_has_no_information(self) -> None:
        entropy = feedback_entropy("trace", ["right"], np.array([5.0]), 5.0)
        self.assertEqual(entropy, 0)

    def test_even_split_is_one_bit(self) -> None:
        entropy = feedback_entropy("right", ["right", "wrong"],
                                   np.array([3.0, 3.0]), 6.0)
        self.assertAlmostEqual(entropy, 1.0)

    def test_goodness(self) -> None:
        best = best_word_score(TEST_DICTIONARY, TEST_DICTIONARY)
        self.assertIsNotNone(best)
        self.assertGreaterEqual(best.goodness, 0)
        self.assertIn(best.word, TEST_WORDS)

    def test_ties_go_to_first(self) -> None:
        pool = (("right", 10), ("wrong", 10))
        self.assertEqual(best_word_score(pool, pool).word, "right")
        pool = (("wrong", 10), ("right", 10))
        self.assertEqual(best_word_score(pool, pool).word, "wrong")

    def test_frequency_prior(self) -> None:
        pool = (("right", 1), ("wrong", 10))
        self.assertEqual(best_word_score(pool, pool).word, "wrong")

    def test_zero_frequencies(self) -> None:
        pool = (("right", 0), ("wrong", 0))
        best = best_word_score(pool, pool)
        self.assertEqual(best.word, "right")
        self.assertAlmostEqual(best.goodness, 0.5)

    def test_explicit_total(self) -> None:
        pool = (("right", 1), ("wrong", 3))
        entropy = -(0.25 * log2(0.25) + 0.75 * log2(0.75))
        best = best_word_score(pool, pool, total=4)
        self.assertEqual(best.word, "wrong")
        self.assertAlmostEqual(best.entropy, entropy)
        self.assertAlmostEqual(best.goodness, 0.75 * entropy)
        # The given total is used as is, not recomputed.
        best = best_word_score(pool, pool, total=8)
        self.assertAlmostEqual(best.goodness, 3 / 8 * best.entropy)

    def test_explicit_zero_total(self) -> None:
        pool = (("right", 0), ("wrong", 0))
        best = best_word_score(pool, pool, total=0)
        self.assertEqual(best.word, "right")
        self.assertAlmostEqual(best.goodness, 0.5)

    def test_empty(self) -> None:
        self.assertIsNone(best_word_score([], []))
        self.assertIsNone(best_word_score([], TEST_DICTIONARY))

    def test_letter_coverage(self) -> None:
        pool = (("aaaab", 1), ("bbbbc", 2))
        self.assertEqual(letter_coverage_scores(pool), [4, 5])


# -----------------------------------------------------------------------------
# Guessers
# -----------------------------------------------------------------------------

class TestEntropyScorer(unittest.TestCase):
    def test_opening_word(self) -> None:
        self.assertEqual(EntropyScorer(TEST_DICTIONARY).guess(()),
                         OPENING_WORD)
        for answer in TEST_WORDS:
            if answer == OPENING_WORD:
                continue
            words = guesses_made(answer, EntropyScorer(TEST_DICTIONARY))
            self.assertEqual(words[0], OPENING_WORD)

    def test_pool_monotonic_and_keeps_answer(self) -> None:
        for answer in TEST_WORDS:
            guesser = EntropyScorer(TEST_DICTIONARY)
            history = []  # type: List[Guess]
            sizes = [len(guesser.remaining())]
            for _ in range(MAX_ROUNDS):
                guess = guesser.guess(tuple(history))
                remaining = dictionary_words(guesser.remaining())
                sizes.append(len(remaining))
                self.assertIn(answer, remaining)
                if guess == answer:
                    break
                self.assertIn(guess, remaining)
                history.append(Guess.from_answer(guess, answer))
            else:
                self.fail(f"Didn't solve {answer}")
            self.assertEqual(sizes, sorted(sizes, reverse=True))

    def test_solves_everything(self) -> None:
        for answer in TEST_WORDS:
            n_guesses = play(answer, EntropyScorer(TEST_DICTIONARY))
            self.assertIsNotNone(n_guesses)
            self.assertLessEqual(n_guesses, 6)

    def test_fallback_on_empty_pool(self) -> None:
        guesser = EntropyScorer(TEST_DICTIONARY)
        g1 = Guess.from_strings("right", "=====")
        g2 = Guess.from_strings("right", "_____")
        self.assertEqual(guesser.guess((g1, )), "right")
        self.assertEqual(guesser.guess((g1, g2)), FALLBACK_WORD)
        self.assertEqual(len(guesser.remaining()), 0)

    def test_scores_with_pool_total(self) -> None:
        history = (Guess.from_answer("trace", "right"), )
        for guesser_class in (EntropyScorer, LazyStaticFilter,
                              PrunedHeuristic):
            with self.subTest(guesser=guesser_class.__name__):
                guesser = guesser_class(TEST_DICTIONARY)
                guesser.pool = CountingPool(TEST_DICTIONARY)
                with mock.patch(__name__ + ".best_word_score",
                                wraps=best_word_score) as scorer:
                    guess = guesser.guess(history)
                self.assertEqual(guesser.pool.n_total_calls, 1)
                scorer.assert_called_once()
                total = scorer.call_args[0][2]
                self.assertEqual(total, guesser.pool.total_frequency())
                self.assertEqual(
                    total, sum(f for _, f in guesser.remaining()))
                self.assertIn(guess, dictionary_words(guesser.remaining()))

    def test_independent_instances(self) -> None:
        a = EntropyScorer(TEST_DICTIONARY)
        b = EntropyScorer(TEST_DICTIONARY)
        a.guess((Guess.from_answer("trace", "right"), ))
        self.assertEqual(len(b.remaining()), len(TEST_DICTIONARY))
        self.assertEqual(b.pool.state, PoolState.BORROWED)


class TestVariants(unittest.TestCase):
    def test_registry(self) -> None:
        self.assertEqual(
            set(ALGORITHMS),
            {"EntropyScorer", "NaiveFilter", "PreallocatedFilter",
             "InPlaceRemovalFilter", "LazyStaticFilter", "PrunedHeuristic"}
        )

    def test_storage_variants_agree(self) -> None:
        for answer in TEST_WORDS:
            expected = guesses_made(answer, EntropyScorer(TEST_DICTIONARY))
            for variant in STORAGE_VARIANTS:
                with self.subTest(answer=answer, variant=variant.__name__):
                    self.assertEqual(
                        guesses_made(answer, variant(TEST_DICTIONARY)),
                        expected
                    )

    def test_remaining_matches(self) -> None:
        history = (Guess.from_answer("trace", "crate"), )
        expected = EntropyScorer(TEST_DICTIONARY)
        expected.guess(history)
        for variant in STORAGE_VARIANTS + (PrunedHeuristic, ):
            guesser = variant(TEST_DICTIONARY)
            guesser.guess(history)
            self.assertEqual(list(guesser.remaining()),
                             list(expected.remaining()))

    def test_lazy_pool(self) -> None:
        guesser = LazyStaticFilter(TEST_DICTIONARY)
        self.assertIsNone(guesser.pool)
        self.assertEqual(guesser.guess(()), OPENING_WORD)
        self.assertIsNone(guesser.pool)
        guesser.guess((Guess.from_answer(OPENING_WORD, "right"), ))
        self.assertIsNotNone(guesser.pool)

    def test_preallocated_buffer_keeps_size(self) -> None:
        guesser = PreallocatedFilter(TEST_DICTIONARY)
        guesser.guess((Guess.from_answer("trace", "right"), ))
        self.assertEqual(len(guesser.buffer), len(TEST_DICTIONARY))
        self.assertLess(guesser.n_live, len(TEST_DICTIONARY))

    def test_pruned_heuristic(self) -> None:
        for answer in TEST_WORDS:
            n_guesses = play(answer, PrunedHeuristic(TEST_DICTIONARY,
                                                     top_n=3))
            self.assertIsNotNone(n_guesses)

    def test_shortlist(self) -> None:
        guesser = PrunedHeuristic(TEST_DICTIONARY, top_n=4)
        shortlist = guesser.shortlist(list(TEST_DICTIONARY))
        self.assertEqual(len(shortlist), 4)
        # Pool order is kept.
        positions = [list(TEST_DICTIONARY).index(e) for e in shortlist]
        self.assertEqual(positions, sorted(positions))
        small = list(TEST_DICTIONARY[:3])
        self.assertEqual(guesser.shortlist(small), small)


# -----------------------------------------------------------------------------
# Game loop
# -----------------------------------------------------------------------------

class TestPlay(unittest.TestCase):
    def test_first_time(self) -> None:
        self.assertEqual(
            play("right", ScriptedGuesser(["right"]), TEST_DICTIONARY), 1)

    def test_second_time(self) -> None:
        self.assertEqual(
            play("right", ScriptedGuesser(["wrong", "right"]),
                 TEST_DICTIONARY),
            2
        )

    def test_never(self) -> None:
        self.assertIsNone(
            play("right", ScriptedGuesser(["wrong"]), TEST_DICTIONARY))
        n_guesses, history = autosolve("right", ScriptedGuesser(["wrong"]),
                                       TEST_DICTIONARY)
        self.assertIsNone(n_guesses)
        self.assertEqual(len(history), MAX_ROUNDS)

    def test_history(self) -> None:
        n_guesses, history = autosolve(
            "right", ScriptedGuesser(["wrong", "light", "right"]),
            TEST_DICTIONARY)
        self.assertEqual(n_guesses, 3)
        self.assertEqual(history, [
            Guess.from_answer("wrong", "right"),
            Guess.from_answer("light", "right"),
        ])

    def test_non_dictionary_guess(self) -> None:
        with self.assertRaises(AssertionError):
            play("right", ScriptedGuesser(["zzzzz"]), TEST_DICTIONARY)

    def test_uses_guessers_dictionary(self) -> None:
        self.assertIsNotNone(play("right", EntropyScorer(TEST_DICTIONARY)))

    def test_show_game(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            filename = write_dictionary(
                os.path.join(tempdir, "dictionary.txt"), TEST_DICTIONARY)
            self.assertEqual(show_game("trace", filename), 1)
            self.assertIsNotNone(show_game("right", filename))
            with self.assertRaises(ValueError):
                show_game("zzzzz", filename)

    def test_show_game_missing_opening_word(self) -> None:
        dictionary = tuple(e for e in TEST_DICTIONARY if e[0] != OPENING_WORD)
        with tempfile.TemporaryDirectory() as tempdir:
            filename = write_dictionary(
                os.path.join(tempdir, "dictionary.txt"), dictionary)
            with self.assertLogs(rootlog, logging.ERROR) as logs:
                with self.assertRaises(DictionaryError):
                    show_game("right", filename)
        self.assertIn(OPENING_WORD, logs.output[0])

    def test_check_opening_word(self) -> None:
        check_opening_word(TEST_DICTIONARY)
        with self.assertRaises(DictionaryError):
            check_opening_word((("right", 1), ), "PrunedHeuristic")


# -----------------------------------------------------------------------------
# Benchmarking
# -----------------------------------------------------------------------------

class TestBenchmark(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.tempdir = self._tempdir.name
        self.output_filename = os.path.join(self.tempdir, "out.csv")

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _dictionary_file(self, dictionary: Dictionary = TEST_DICTIONARY) \
            -> str:
        return write_dictionary(
            os.path.join(self.tempdir, "dictionary.txt"), dictionary)

    def _read_output(self) -> List[List[str]]:
        with open(self.output_filename, newline="") as f:
            return list(csv.reader(f))

    def test_summary(self) -> None:
        summary = summarize_performance("x", [1, None, 3])
        self.assertAlmostEqual(summary["prop_success"], 2 / 3)
        self.assertEqual(summary["min"], 1)
        self.assertEqual(summary["max"], 3)
        self.assertEqual(summary["median"], 2)
        self.assertEqual(summary["mean"], 2)

    def test_summary_all_failed(self) -> None:
        summary = summarize_performance("x", [None, None])
        self.assertEqual(summary["prop_success"], 0)
        self.assertNotIn("mean", summary)

    def test_serial_run(self) -> None:
        summary = measure_algorithm_performance(
            dictionary_filename=self._dictionary_file(),
            output_filename=self.output_filename,
            nwords=5,
            nproc=1,
            algorithm_name="EntropyScorer",
            use_ray=False,
        )
        rows = self._read_output()
        self.assertEqual(summary["n_games"], 5)
        self.assertEqual(summary["prop_success"], 1.0)
        self.assertEqual(rows[0], ["algorithm", "word", "n_guesses"])
        self.assertEqual([r[1] for r in rows[1:]], TEST_WORDS[:5])
        self.assertTrue(all(int(r[2]) >= 1 for r in rows[1:]))

    def test_missing_opening_word(self) -> None:
        dictionary = tuple(e for e in TEST_DICTIONARY if e[0] != OPENING_WORD)
        with self.assertLogs(rootlog, logging.ERROR):
            with self.assertRaises(DictionaryError):
                measure_algorithm_performance(
                    dictionary_filename=self._dictionary_file(dictionary),
                    output_filename=self.output_filename,
                    nproc=1,
                    use_ray=False,
                )
        self.assertFalse(os.path.exists(self.output_filename))

    def test_ray_run(self) -> None:
        def remote(answers, *args, **kwargs):
            return [(word, 2) for word in answers]

        with mock.patch.object(ray, "init") as ray_init, \
                mock.patch.object(ray, "shutdown") as ray_shutdown, \
                mock.patch.object(ray, "wait",
                                  side_effect=lambda jobs: (jobs[:1],
                                                            jobs[1:])), \
                mock.patch.object(ray, "get", side_effect=lambda job: job), \
                mock.patch(__name__ + ".autosolve_ray") as ray_function:
            ray_function.remote.side_effect = remote
            summary = measure_algorithm_performance(
                dictionary_filename=self._dictionary_file(),
                output_filename=self.output_filename,
                nwords=10,
                nproc=2,
                chunks_per_worker=2,
            )
        ray_init.assert_called_once_with(num_cpus=2)
        ray_shutdown.assert_called_once_with()
        self.assertEqual(summary["n_games"], 10)
        self.assertEqual(summary["mean"], 2)
        self.assertEqual([r[1] for r in self._read_output()[1:]],
                         TEST_WORDS[:10])

    def test_ray_shut_down_on_error(self) -> None:
        with mock.patch.object(ray, "init"), \
                mock.patch.object(ray, "shutdown") as ray_shutdown, \
                mock.patch(__name__ + ".autosolve_ray") as ray_function:
            ray_function.remote.side_effect = RuntimeError("worker failed")
            with self.assertRaises(RuntimeError):
                measure_algorithm_performance(
                    dictionary_filename=self._dictionary_file(),
                    output_filename=self.output_filename,
                    nwords=4,
                    nproc=2,
                )
        ray_shutdown.assert_called_once_with()


# =============================================================================
# Command-line entry point
# =============================================================================

def main() -> None:
    # -------------------------------------------------------------------------
    # Arguments
    # -------------------------------------------------------------------------
    parser = argparse.ArgumentParser(
        "Wordle strategy simulator.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--dictionary_filename", default=DEFAULT_DICTIONARY,
        help=f"File of '<word> <frequency>' lines, one per {WORDLEN}-letter "
             f"lower-case word"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Be verbose"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    cmd_play = "play"
    parser_play = subparsers.add_parser(
        cmd_play,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser_play.add_argument(
        "--answer", type=str, required=True,
        help="Hidden word for the guesser to find"
    )
    parser_play.add_argument(
        "--algorithm", type=str, choices=ALGORITHMS.keys(),
        default=DEFAULT_ALGORITHM,
        help="Algorithm to use"
    )

    cmd_benchmark = "benchmark"
    parser_benchmark = subparsers.add_parser(
        cmd_benchmark,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser_benchmark.add_argument(
        "--output", type=str, default=None,
        help="File for CSV-format output (if unspecified, a sensible default "
             "will be created based on the algorithm chosen)"
    )
    parser_benchmark.add_argument(
        "--nwords", type=int,
        help="Number of words to test (if unspecified, will test all)"
    )
    parser_benchmark.add_argument(
        "--nproc", type=int, default=DEFAULT_NPROC,
        help="Number of parallel processes"
    )
    parser_benchmark.add_argument(
        "--algorithm", type=str, choices=ALGORITHMS.keys(),
        default=DEFAULT_ALGORITHM,
        help="Algorithm to use"
    )
    parser_benchmark.add_argument(
        "--without_ray", action="store_true",
        help="Parallelize with a process pool rather than Ray"
    )

    args = parser.parse_args()

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    loglevel = logging.DEBUG if args.verbose else logging.INFO
    main_only_quicksetup_rootlogger(level=loglevel)

    # -------------------------------------------------------------------------
    # Act
    # -------------------------------------------------------------------------
    if args.command == cmd_play:
        show_game(
            answer=args.answer.strip().lower(),
            dictionary_filename=args.dictionary_filename,
            algorithm_name=args.algorithm,
        )
    elif args.command == cmd_benchmark:
        output_filename = (
            args.output or f"out_{args.algorithm}.csv"
        )
        measure_algorithm_performance(
            dictionary_filename=args.dictionary_filename,
            output_filename=output_filename,
            nwords=args.nwords,
            nproc=args.nproc,
            algorithm_name=args.algorithm,
            loglevel=loglevel,
            use_ray=not args.without_ray,
        )
    else:
        raise AssertionError("argument-parsing bug")

