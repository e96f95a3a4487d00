"""
Punctuation Restorer — Rule-based punctuation for CJK transcripts.

Speech engines often return Chinese text without any punctuation, which
leaves the segmenter with nothing but length to split on. The silence
between consecutive timed tokens is a good proxy: a short pause becomes
a comma, a long one a full stop (or a question mark after a question
particle).
"""

import logging
from typing import Dict, List, Sequence

from .asr_worker import TimedTextToken

logger = logging.getLogger(__name__)

QUESTION_PARTICLES = (
    "嗎", "吗", "呢", "吧", "嘛",
    "對不對", "对不对",
    "是不是", "好不好",
    "對吧", "对吧",
)

# Marks that already end a clause; nothing is inserted after them
EXISTING_MARKS = frozenset("。？！.?!，、；：,;")


class PunctuationRestorer:
    """Inserts ，/。/？ tokens at silence gaps between timed tokens."""

    def __init__(self, comma_threshold: float = 0.5, period_threshold: float = 1.0,
                 lookback: int = 5):
        self.comma_threshold = comma_threshold
        self.period_threshold = period_threshold
        self.lookback = lookback

    def restore(self, tokens: Sequence[TimedTextToken]) -> List[TimedTextToken]:
        """
        Return a new token list with punctuation tokens inserted.

        Inserted tokens carry no time range. Untimed input tokens are kept
        in place but ignored when measuring gaps.
        """
        timed = [(i, tok) for i, tok in enumerate(tokens) if tok.has_finite_time]
        if len(timed) < 2:
            return list(tokens)

        insertions: Dict[int, str] = {}
        for n in range(len(timed) - 1):
            index, current = timed[n]
            following = timed[n + 1][1]

            gap = following.start - current.end
            if gap < self.comma_threshold:
                continue

            trimmed = current.text.strip()
            if trimmed and trimmed[-1] in EXISTING_MARKS:
                continue

            if gap >= self.period_threshold:
                window = timed[max(0, n - self.lookback):n + 1]
                recent = "".join(tok.text for _, tok in window).strip()
                mark = "？" if recent.endswith(QUESTION_PARTICLES) else "。"
            else:
                mark = "，"
            insertions[index] = mark

        if not insertions:
            return list(tokens)

        logger.debug(f"Restored {len(insertions)} punctuation marks")

        restored: List[TimedTextToken] = []
        for i, token in enumerate(tokens):
            restored.append(token)
            if i in insertions:
                restored.append(TimedTextToken(insertions[i]))
        return restored
