"""
_trace.py
=========
Line-oriented reader for SPR search traces.

Trace grammar
-------------
  @tree <newick>            begin a new tree generation; text before '(' ignored
  @tree: <newick>           same
  @subtree (<names>)        clade to prune, whitespace-separated tip names
  @insertion <score> (<names>)
                            candidate regraft edge (by induced split) + score
  anything else             ignored

Records
-------
The reader yields a closed set of record types:

  TreeRecord(newick)
  SubtreeRecord(names)
  InsertionRecord(names, score_token)   .score parses the token lazily
  EndRecord()

``TraceRecord`` is their union; ``RecordKind`` names the reader state.

Usage
-----
The low-level protocol mirrors a cursor: ``next()`` classifies the next
recognised line and returns its kind, after which exactly one matching
``get_*()`` accessor is valid.  ``read()`` does both in one call.

>>> import io
>>> reader = TraceReader(io.StringIO("@tree (A,B,(C,D));\\n@subtree (D C)\\n"))
>>> reader.next()
<RecordKind.TREE: 'tree'>
>>> reader.get_tree().newick
'(A,B,(C,D));'
>>> reader.read()
SubtreeRecord(names=('C', 'D'))
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional, TextIO, Tuple, Union

from sprtrace._errors import (
    EndOfStreamError,
    MalformedRecordError,
    StateMismatchError,
)
from sprtrace._utils import name_list, parenthesised_span, split_tokens

logger = logging.getLogger(__name__)


class RecordKind(enum.Enum):
    SEEKING = "seeking"
    TREE = "tree"
    SUBTREE = "subtree"
    INSERTION = "insertion"
    END = "end"


_TOKEN_KINDS = {
    "@tree": RecordKind.TREE,
    "@tree:": RecordKind.TREE,
    "@subtree": RecordKind.SUBTREE,
    "@insertion": RecordKind.INSERTION,
}


@dataclass(frozen=True)
class TreeRecord:
    newick: str


@dataclass(frozen=True)
class SubtreeRecord:
    names: Tuple[str, ...]


@dataclass(frozen=True)
class InsertionRecord:
    """
    Candidate regraft position.

    The score is kept as its raw token so that a missing or malformed score
    does not fail classification; ``score`` raises ``MalformedRecordError``
    when the value is actually needed.
    """

    names: Tuple[str, ...]
    score_token: Optional[str]
    line_number: Optional[int] = field(default=None, compare=False, repr=False)
    line: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def score(self) -> float:
        if self.score_token is None:
            raise MalformedRecordError(
                "Insertion record has no score.", self.line_number, self.line
            )
        try:
            return float(self.score_token)
        except ValueError:
            raise MalformedRecordError(
                f"Insertion score {self.score_token!r} is not a number.",
                self.line_number,
                self.line,
            ) from None


@dataclass(frozen=True)
class EndRecord:
    pass


TraceRecord = Union[TreeRecord, SubtreeRecord, InsertionRecord, EndRecord]


class TraceReader:
    """
    Stateful scanner over a text stream of trace lines.

    Parameters
    ----------
    stream : TextIO
        Open text stream.  The reader does not close it.

    Attributes
    ----------
    kind        : RecordKind   Classification of the current line.
    line        : str          Text of the current line (no line ending).
    line_number : int          1-based number of the current line.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.kind = RecordKind.SEEKING
        self.line = ""
        self.line_number = 0

    def next(self) -> RecordKind:
        """
        Advance to the next recognised line and return its kind.

        Returns ``RecordKind.END`` once the stream is exhausted.

        Raises
        ------
        EndOfStreamError   if called again after END was returned.
        """
        if self.kind is RecordKind.END:
            raise EndOfStreamError(
                "Trace already exhausted.", self.line_number, self.line
            )
        while True:
            raw = self._stream.readline()
            if raw == "":
                self.kind = RecordKind.END
                return self.kind
            self.line = raw.rstrip("\r\n")
            self.line_number += 1

            tokens = split_tokens(self.line, 1)
            if not tokens:
                continue
            kind = _TOKEN_KINDS.get(tokens[0])
            if kind is None:
                continue
            self.kind = kind
            return kind

    def read(self) -> TraceRecord:
        """Advance with ``next()`` and return the full record."""
        kind = self.next()
        if kind is RecordKind.TREE:
            return self.get_tree()
        if kind is RecordKind.SUBTREE:
            return self.get_subtree()
        if kind is RecordKind.INSERTION:
            return self.get_insertion()
        return EndRecord()

    def get_tree(self) -> TreeRecord:
        """
        NEWICK text of the current ``@tree`` line: from its first '(' to the
        end of the line.
        """
        self._expect(RecordKind.TREE)
        first = self.line.find("(")
        if first < 0:
            raise MalformedRecordError(
                "Tree record has no '('.", self.line_number, self.line
            )
        return TreeRecord(self.line[first:].strip())

    def get_subtree(self) -> SubtreeRecord:
        self._expect(RecordKind.SUBTREE)
        return SubtreeRecord(self._names())

    def get_insertion(self) -> InsertionRecord:
        self._expect(RecordKind.INSERTION)
        tokens = split_tokens(self.line, 2)
        score_token = tokens[1] if len(tokens) > 1 else None
        return InsertionRecord(
            self._names(), score_token, self.line_number, self.line
        )

    def dump_position(self) -> None:
        """Log the current line and its number at ERROR level."""
        logger.error("trace reader lines: %d", self.line_number)
        logger.error("%s", self.line)

    def _expect(self, kind: RecordKind) -> None:
        if self.kind is not kind:
            raise StateMismatchError(
                f"Requested a {kind.value} record but the reader is at "
                f"{self.kind.value}.",
                self.line_number,
                self.line,
            )

    def _names(self) -> Tuple[str, ...]:
        span = parenthesised_span(self.line)
        if span is None:
            raise MalformedRecordError(
                "Record has no '(' ... ')' name list.", self.line_number, self.line
            )
        start, stop = span
        return name_list(self.line[start:stop])
