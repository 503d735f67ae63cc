"""
Models
======
Lexicon sentiment scorer and the three trainable estimators.
"""

from stocksentix.models.lexicon import LexiconSentiment, score_headline
from stocksentix.models.logistic import LogisticModel, LogisticTrainer
from stocksentix.models.naive_bayes import NaiveBayesTextClassifier
from stocksentix.models.linear_regression import LinearRegressionModel, LinearRegressionTrainer

__all__ = [
    "LexiconSentiment",
    "score_headline",
    "LogisticModel",
    "LogisticTrainer",
    "NaiveBayesTextClassifier",
    "LinearRegressionModel",
    "LinearRegressionTrainer",
]
