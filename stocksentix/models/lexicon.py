"""
================================================================================
LEXICON HEADLINE SENTIMENT SCORER
================================================================================
Rule-based polarity scoring for short financial headlines. Two modes share
one scoring rule and differ only in the term-weight table:

    VADER   : generic market lexicon
    FINBERT : generic lexicon overlaid with finance-specific weights
              (finance entries win on key collision)

For a headline with cleaned tokens w_1 .. w_n the score is

    S = sum_i( weight(w_i) * modifier_i ) / sqrt(max(1, n))

where modifier_i = -0.7 if w_{i-1} is a negation word, 1.25 if w_{i-1} is an
intensifier, else 1. The -0.7 factor is a weakened, sign-flipped reaction
rather than a full negation. Dividing by sqrt(n) keeps long headlines from
dominating purely by token count.
================================================================================
"""

import re
import math
import numpy as np
import pandas as pd
from typing import Dict, List


class LexiconSentiment:
    """
    Headline polarity scorer with negation and intensifier handling.

    Parameters
    ----------
    model : str
        "VADER" or "FINBERT" (case-insensitive). Unknown names fall back to
        the generic VADER table.
    """

    # -------------------------------------------------------------------------
    # Generic market vocabulary: {word: weight}
    # -------------------------------------------------------------------------
    GENERIC_LEXICON: Dict[str, float] = {
        "gain": 1.6,
        "growth": 1.4,
        "rally": 1.8,
        "beat": 1.7,
        "strong": 1.1,
        "upgrade": 1.6,
        "jump": 1.5,
        "improve": 1.2,
        "risk": -1.1,
        "weak": -1.3,
        "miss": -1.7,
        "slump": -1.8,
        "downgrade": -1.6,
        "crash": -2.2,
        "fall": -1.4,
        "volatile": -0.6,
    }

    # -------------------------------------------------------------------------
    # Finance-specific overrides and additions
    # -------------------------------------------------------------------------
    FINANCE_LEXICON: Dict[str, float] = {
        "bullish": 2.1,
        "outperform": 2.0,
        "guidance": 0.9,
        "margin": 0.8,
        "buyback": 1.4,
        "inflow": 1.1,
        "beat": 1.6,
        "miss": -1.8,
        "bearish": -2.1,
        "downgrades": -1.6,
        "recession": -1.7,
        "inflation": -0.9,
        "outflow": -1.2,
        "lawsuit": -1.4,
        "default": -2.0,
    }

    NEGATIONS = frozenset({"no", "not", "never", "without", "hardly"})
    INTENSIFIERS = frozenset({"very", "highly", "significantly", "extremely"})

    NEGATION_FACTOR = -0.7
    INTENSIFIER_FACTOR = 1.25

    _NON_LETTERS = re.compile(r"[^a-z]")

    def __init__(self, model: str = "VADER"):
        self.model_name = "FINBERT" if str(model).upper() == "FINBERT" else "VADER"
        if self.model_name == "FINBERT":
            self.lexicon = {**self.GENERIC_LEXICON, **self.FINANCE_LEXICON}
        else:
            self.lexicon = dict(self.GENERIC_LEXICON)

    def tokenize(self, text: str) -> List[str]:
        """Whitespace split, lower-case, strip non-letters, drop empties."""
        tokens = (self._NON_LETTERS.sub("", tok.lower()) for tok in text.split())
        return [tok for tok in tokens if tok]

    def score_text(self, text: str) -> float:
        """
        Score a single headline.

        Parameters
        ----------
        text : str
            Headline text. Non-string or empty input scores 0.

        Returns
        -------
        float, unbounded polarity (positive = bullish).
        """
        if not isinstance(text, str) or not text:
            return 0.0
        tokens = self.tokenize(text)
        if not tokens:
            return 0.0

        total = 0.0
        for i, token in enumerate(tokens):
            weight = self.lexicon.get(token)
            if not weight:
                continue
            prev = tokens[i - 1] if i > 0 else None
            if prev in self.NEGATIONS:
                weight *= self.NEGATION_FACTOR
            if prev in self.INTENSIFIERS:
                weight *= self.INTENSIFIER_FACTOR
            total += weight

        return total / math.sqrt(max(1, len(tokens)))

    def score_batch(self, texts: List[str]) -> np.ndarray:
        """Score a batch of headlines, returning a numpy array."""
        return np.array([self.score_text(t) for t in texts], dtype=float)

    def score_dataframe(
        self,
        df: pd.DataFrame,
        text_column: str = "headline",
        score_column: str = "sentiment",
    ) -> pd.DataFrame:
        """Return a copy of df with a sentiment score column added."""
        df = df.copy()
        df[score_column] = self.score_batch(df[text_column].fillna("").tolist())
        return df

    def __repr__(self) -> str:
        return f"LexiconSentiment(model={self.model_name}, lexicon_size={len(self.lexicon)})"


def score_headline(text: str, model: str = "VADER") -> float:
    """Convenience wrapper: score one headline with the named lexicon."""
    return LexiconSentiment(model).score_text(text)
