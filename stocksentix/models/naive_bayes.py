"""
================================================================================
MULTINOMIAL NAIVE BAYES HEADLINE CLASSIFIER
================================================================================
Predicts whether the index closes up (1) or down (0) from the day's
concatenated headlines.

Text cleaning (archive headlines are often byte-string reprs like b'...'):
    strip a leading b' / b" and a trailing quote, unescape \\', replace every
    non-alphanumeric run with a space, lower-case, keep tokens of length >= 2

Training on documents D with labels y:
    V        = top-N tokens by corpus frequency (ties in first-seen order)
    P(y = 1) = (n_1 + 1) / (n_0 + n_1 + 2)
    P(w | c) = (count_c(w) + 1) / (total_c + |V|)

Scoring uses log-probabilities with the larger class score subtracted before
exponentiation, so long documents never underflow:

    P(up | d) = e^(s_1 - m) / (e^(s_0 - m) + e^(s_1 - m)),  m = max(s_0, s_1)

Tokens outside V are ignored at both training and scoring time.
================================================================================
"""

import re
import math
from collections import Counter
from typing import Dict, List, Sequence, Tuple

from stocksentix.config import NaiveBayesConfig


_BYTES_PREFIX = re.compile(r"^b['\"]")
_TRAILING_QUOTE = re.compile(r"['\"]$")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9 ]+")
_WHITESPACE = re.compile(r"\s+")


def clean_news_text(text) -> str:
    """Normalise one headline (or a joined set of headlines)."""
    s = "" if text is None else str(text)
    s = _BYTES_PREFIX.sub("", s)
    s = _TRAILING_QUOTE.sub("", s)
    s = s.replace("\\'", "'")
    s = _NON_ALNUM.sub(" ", s).lower()
    return _WHITESPACE.sub(" ", s).strip()


def tokenize(text, min_len: int = 2) -> List[str]:
    return [tok for tok in clean_news_text(text).split(" ") if len(tok) >= min_len]


class NaiveBayesTextClassifier:
    """
    Laplace-smoothed multinomial naive Bayes over a capped vocabulary.

    Parameters
    ----------
    config : NaiveBayesConfig, optional
        Vocabulary size and minimum token length.
    """

    def __init__(self, config: NaiveBayesConfig = None):
        self.cfg = config or NaiveBayesConfig()
        self.vocabulary: List[str] = []
        self._vocab_set = frozenset()
        self._counts: Tuple[Counter, Counter] = (Counter(), Counter())
        self._denominators = (1, 1)
        self._log_priors = (math.log(0.5), math.log(0.5))

    def _tokens(self, text) -> List[str]:
        return tokenize(text, self.cfg.min_token_len)

    def fit(self, texts: Sequence[str], labels: Sequence[int]) -> "NaiveBayesTextClassifier":
        docs = [self._tokens(t) for t in texts]

        freq = Counter()
        for words in docs:
            freq.update(words)
        self.vocabulary = [w for w, _ in freq.most_common(self.cfg.vocab_limit)]
        self._vocab_set = frozenset(self.vocabulary)

        counts0, counts1 = Counter(), Counter()
        n0 = n1 = 0
        for words, label in zip(docs, labels):
            kept = [w for w in words if w in self._vocab_set]
            if int(label) == 1:
                n1 += 1
                counts1.update(kept)
            else:
                n0 += 1
                counts0.update(kept)

        prior1 = (n1 + 1) / (n0 + n1 + 2)
        self._log_priors = (math.log(1 - prior1), math.log(prior1))
        self._counts = (counts0, counts1)
        size = len(self.vocabulary)
        self._denominators = (sum(counts0.values()) + size, sum(counts1.values()) + size)
        return self

    def predict_proba(self, text) -> float:
        """P(up) for one document."""
        s0, s1 = self._log_priors
        counts0, counts1 = self._counts
        d0, d1 = self._denominators
        for w in self._tokens(text):
            if w not in self._vocab_set:
                continue
            s0 += math.log((counts0[w] + 1) / d0)
            s1 += math.log((counts1[w] + 1) / d1)
        top = max(s0, s1)
        p0, p1 = math.exp(s0 - top), math.exp(s1 - top)
        return p1 / ((p0 + p1) or 1)

    def predict(self, text) -> Dict:
        prob = self.predict_proba(text)
        return {"probability_up": prob, "prediction": 1 if prob >= 0.5 else 0}
