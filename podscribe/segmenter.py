"""
Transcript Segmenter — Splits a timed transcript into subtitle units.

Splitting priority, per sentence:
  1. Sentences that fit within max_length stay whole, and consecutive
     whole sentences share a unit while they fit together
  2. CJK: split at clause punctuation (，、；：,;), re-merge small
     neighbours, and word-split any clause that is still too long
  3. Everything else: greedy word accumulation up to max_length

Joining sentences is a deliberate change from one unit per sentence: a
transcript that fits within max_length comes out as a single subtitle.
A unit never holds part of one sentence together with part of another.

Lengths are counted in code points. A single word longer than
max_length is emitted whole rather than cut in half. Each span's time
range is recovered from the timed tokens it overlaps; spans without any
timed token cannot be placed on the timeline and are dropped.
"""

import re
import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import jieba
from nltk.tokenize import RegexpTokenizer
from nltk.tokenize.punkt import PunktSentenceTokenizer

from .asr_worker import TimedTextToken

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

CLAUSE_MARKERS = frozenset("，、；：,;")

# CJK terminators are not followed by whitespace, which Punkt relies on
_CJK_SENTENCE_END = re.compile(r"[。！？]+[」』”’）)\"']*")

# Hiragana, Katakana and CJK ideographs count as one word per character
_CJK_CHARS = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"

_sentence_tokenizer = PunktSentenceTokenizer()
_whitespace_words = RegexpTokenizer(r"\S+")
_cjk_words = RegexpTokenizer(rf"[{_CJK_CHARS}]|[^\s{_CJK_CHARS}]+")
_has_word_char = re.compile(r"\w")


@dataclass(frozen=True)
class SubtitleSegment:
    """A finished subtitle line with its time range."""
    start_time: float
    end_time: float
    text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def __repr__(self):
        return (f"SubtitleSegment({self.start_time:.2f}–{self.end_time:.2f}s, "
                f"'{self.text[:40]}')")


@dataclass(frozen=True)
class WordTiming:
    word: str
    start_time: float
    end_time: float


@dataclass(frozen=True)
class SegmentWithWordTimings:
    id: int
    start_time: float
    end_time: float
    text: str
    word_timings: List[WordTiming] = field(default_factory=list)


class _TokenIndex:
    """Character-offset index over the concatenated token text."""

    def __init__(self, tokens: Sequence[TimedTextToken]):
        self.tokens = list(tokens)
        self.text = "".join(tok.text for tok in self.tokens)

        # Offsets of each token's non-whitespace core
        self.core_starts: List[int] = []
        self.core_ends: List[int] = []
        offset = 0
        for tok in self.tokens:
            stripped_left = tok.text.lstrip()
            core_start = offset + len(tok.text) - len(stripped_left)
            core_end = core_start + len(stripped_left.rstrip())
            self.core_starts.append(core_start)
            self.core_ends.append(core_end)
            offset += len(tok.text)

    def timed_tokens_in(self, start: int, end: int) -> List[TimedTextToken]:
        """Timed tokens whose non-whitespace text overlaps [start, end)."""
        lo = bisect_right(self.core_ends, start)
        hi = bisect_left(self.core_starts, end)
        return [
            self.tokens[i] for i in range(lo, hi)
            if self.core_starts[i] < self.core_ends[i]
            and self.tokens[i].has_finite_time
        ]


class TranscriptSegmenter:
    """
    Locale-aware subtitle segmentation.

    Usage:
        segmenter = TranscriptSegmenter(is_cjk=False, max_length=40)
        segments = segmenter.split_into_segments(tokens)
    """

    def __init__(self, is_cjk: bool = False, max_length: int = 40,
                 language: Optional[str] = None):
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.is_cjk = is_cjk
        self.max_length = max_length
        self.language = language

    # ── Public API ──

    def compute_segment_ranges(self, text: str) -> List[Span]:
        """Return [start, end) character spans of each subtitle unit."""
        ranges: List[Span] = []
        joinable = False  # last range is made of whole sentences
        for sentence in self._sentence_spans(text):
            if self._length(text, sentence) <= self.max_length:
                joined = (ranges[-1][0], sentence[1]) if joinable else None
                if joined and self._length(text, joined) <= self.max_length:
                    ranges[-1] = joined
                else:
                    ranges.append(sentence)
                joinable = True
                continue

            if self.is_cjk:
                ranges.extend(self._split_cjk_sentence(text, sentence))
            else:
                ranges.extend(self._split_by_words(text, sentence))
            joinable = False
        return ranges

    def split_into_segments(self, tokens: Sequence[TimedTextToken]) -> List[SubtitleSegment]:
        """Segment a token stream into timed subtitle units."""
        return [
            SubtitleSegment(start, end, text)
            for text, start, end, _ in self._timed_spans(tokens)
        ]

    def extract_segments_with_word_timings(
        self, tokens: Sequence[TimedTextToken]
    ) -> List[SegmentWithWordTimings]:
        """
        Same segmentation as split_into_segments, with per-word timing.

        Ids match the 1-based index the segment gets in the SRT output.
        """
        records = []
        for number, (text, start, end, timed) in enumerate(self._timed_spans(tokens), 1):
            words = [
                WordTiming(tok.text.strip(), tok.start, tok.end) for tok in timed
            ]
            if not words:
                continue
            records.append(SegmentWithWordTimings(number, start, end, text, words))
        return records

    # ── Span timing ──

    def _timed_spans(self, tokens: Sequence[TimedTextToken]):
        """Yield (text, start, end, timed_tokens) for every placeable span."""
        index = _TokenIndex(tokens)
        dropped = 0

        for start, end in self.compute_segment_ranges(index.text):
            text = index.text[start:end].strip()
            if not text:
                continue
            timed = index.timed_tokens_in(start, end)
            if not timed:
                dropped += 1
                continue
            yield (
                text,
                min(tok.start for tok in timed),
                max(tok.end for tok in timed),
                timed,
            )

        if dropped:
            logger.debug(f"Dropped {dropped} spans without timing information")

    # ── Tokenization ──

    @staticmethod
    def _length(text: str, span: Span) -> int:
        return len(text[span[0]:span[1]].strip())

    def _sentence_spans(self, text: str) -> List[Span]:
        spans: List[Span] = []
        for start, end in _sentence_tokenizer.span_tokenize(text):
            spans.extend(self._split_cjk_terminators(text, start, end))
        return spans

    @staticmethod
    def _split_cjk_terminators(text: str, start: int, end: int) -> List[Span]:
        pieces: List[Span] = []
        piece_start = start
        for match in _CJK_SENTENCE_END.finditer(text, start, end):
            if match.end() >= end:
                break
            pieces.append((piece_start, match.end()))
            piece_start = match.end()
            while piece_start < end and text[piece_start].isspace():
                piece_start += 1
        pieces.append((piece_start, end))
        return [p for p in pieces if text[p[0]:p[1]].strip()]

    def _word_spans(self, text: str, start: int, end: int) -> List[Span]:
        """Word spans inside [start, end), punctuation attached to its word."""
        sub = text[start:end]
        if self.is_cjk and self.language == "zh":
            raw = [(s, e) for _, s, e in jieba.tokenize(sub) if sub[s:e].strip()]
        elif self.is_cjk:
            raw = list(_cjk_words.span_tokenize(sub))
        else:
            raw = list(_whitespace_words.span_tokenize(sub))

        words: List[Span] = []
        leading_start = None
        for s, e in raw:
            if _has_word_char.search(sub[s:e]) is None:
                if words:
                    words[-1] = (words[-1][0], e)
                elif leading_start is None:
                    leading_start = s
                continue
            if leading_start is not None:
                s, leading_start = leading_start, None
            words.append((s, e))

        return [(start + s, start + e) for s, e in words]

    # ── Splitting ──

    def _split_by_words(self, text: str, span: Span) -> List[Span]:
        """Greedily pack words into spans of at most max_length."""
        words = self._word_spans(text, *span)
        if not words:
            return [span]

        # Stretch the outer words to the span edges so nothing is lost
        words[0] = (span[0], words[0][1])
        words[-1] = (words[-1][0], span[1])

        segments: List[Span] = []
        for word in words:
            if segments and self._length(text, (segments[-1][0], word[1])) <= self.max_length:
                segments[-1] = (segments[-1][0], word[1])
            else:
                segments.append(word)
        return segments

    def _split_at_clause_markers(self, text: str, span: Span) -> List[Span]:
        """Split at clause punctuation; each clause keeps its marker."""
        clauses: List[Span] = []
        clause_start = span[0]
        for i in range(span[0], span[1]):
            if text[i] in CLAUSE_MARKERS:
                clauses.append((clause_start, i + 1))
                clause_start = i + 1
        if clause_start < span[1]:
            clauses.append((clause_start, span[1]))
        return clauses

    def _split_cjk_sentence(self, text: str, span: Span) -> List[Span]:
        result: List[Span] = []
        for clause in self._split_at_clause_markers(text, span):
            if self._length(text, clause) > self.max_length:
                result.extend(self._split_by_words(text, clause))
            elif result and self._length(text, (result[-1][0], clause[1])) <= self.max_length:
                result[-1] = (result[-1][0], clause[1])
            else:
                result.append(clause)
        return result
