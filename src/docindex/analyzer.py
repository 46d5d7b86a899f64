"""
Text Analyzer

Turns document content and free-text queries into index terms.
Used by both the Indexer (content) and the SearchEngine (queries).

Latin text is split on word characters; Japanese text is segmented with
SudachiPy. Terms are lowercased and English stop words are dropped.
"""

import logging
import re

from sudachipy import Dictionary, SplitMode

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")

STOP_WORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because
    been before being below between both but by can did do does doing down
    during each few for from further had has have having he her here hers
    herself him himself his how i if in into is it its itself just me more
    most my myself no nor not now of off on once only or other our ours
    ourselves out over own same she should so some such than that the their
    theirs them themselves then there these they this those through to too
    under until up very was we were what when where which while who whom why
    will with you your yours yourself yourselves
    """.split()
)


class TextAnalyzer:
    def __init__(self, mode: str = "A", stop_words: frozenset[str] = STOP_WORDS):
        self.stop_words = stop_words
        self._tokenizer = None
        # Mode A: Shortest (High Recall e.g. 東京都 -> 東京, 都)
        # Mode C: Longest (High Precision e.g. 東京都 -> 東京都)
        if mode == "A":
            self.mode = SplitMode.A
        elif mode == "B":
            self.mode = SplitMode.B
        else:
            self.mode = SplitMode.C

    def tokenize(self, text: str) -> list[str]:
        """
        Split text into lowercase index terms, in document order.

        Raises:
            Exception: Re-raises segmentation errors after logging
        """
        if not text or not text.strip():
            return []

        if self._is_japanese(text):
            words = self._segment(text)
        else:
            words = _WORD_RE.findall(text)

        terms = []
        for word in words:
            term = word.lower()
            if term and term not in self.stop_words:
                terms.append(term)
        return terms

    def _segment(self, text: str) -> list[str]:
        if self._tokenizer is None:
            self._tokenizer = Dictionary().create()
        try:
            tokens = self._tokenizer.tokenize(text, self.mode)
        except Exception as e:
            logger.error(
                f"Tokenization failed for text (len={len(text)}): {e}",
                exc_info=True,
            )
            raise

        words = []
        for token in tokens:
            # Keep word runs only; punctuation surfaces are dropped
            words.extend(_WORD_RE.findall(token.surface()))
        return words

    def _is_japanese(self, text: str) -> bool:
        # Hiragana: 3040-309F
        # Katakana: 30A0-30FF
        # Kanji: 4E00-9FFF
        for char in text:
            code = ord(char)
            if (
                (0x3040 <= code <= 0x309F)
                or (0x30A0 <= code <= 0x30FF)
                or (0x4E00 <= code <= 0x9FFF)
            ):
                return True
        return False


# Global instance
analyzer = TextAnalyzer(mode="A")
