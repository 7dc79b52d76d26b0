"""
Heuristic Classifier
====================

Deterministic, dependency-free substitute for the remote inference
service. Same (title, body) always yields the same result.
"""

from __future__ import annotations
from typing import List
import re

from .contracts import AnalysisResult, Provenance, Sentiment


HEURISTIC_MODEL_ID = "heuristic-v1"
SUMMARY_WIDTH = 100
MAX_HEURISTIC_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 5
EMPTY_TITLE_SUMMARY = "No title available"

POSITIVE_WORDS = frozenset({
    'good', 'great', 'excellent', 'amazing', 'awesome', 'best', 'love',
    'loved', 'happy', 'fantastic', 'wonderful', 'helpful', 'success',
    'successful', 'win', 'winning', 'growth', 'improve', 'improved',
    'perfect', 'nice', 'thanks', 'thank', 'recommend', 'useful',
    'effective', 'brilliant', 'excited', 'easy', 'positive',
})

NEGATIVE_WORDS = frozenset({
    'bad', 'terrible', 'awful', 'worst', 'hate', 'hated', 'angry', 'sad',
    'poor', 'horrible', 'useless', 'fail', 'failed', 'failure', 'problem',
    'problems', 'issue', 'issues', 'broken', 'scam', 'spam', 'banned',
    'disappointed', 'disappointing', 'annoying', 'wrong', 'lost', 'decline',
    'difficult', 'negative',
})

STOP_WORDS = frozenset({
    'about', 'above', 'after', 'again', 'against', 'among', 'another',
    'because', 'before', 'being', 'below', 'between', 'could', 'doing',
    'during', 'every', 'further', 'having', 'might', 'other', 'ought',
    'should', 'since', 'still', 'their', 'theirs', 'there', 'these',
    'thing', 'things', 'those', 'through', 'under', 'until', 'where',
    'which', 'while', 'would', 'yours', 'yourself', 'anyone', 'someone',
    'everyone', 'really', 'think', 'anything', 'something', 'everything',
    'going', 'people', 'theres', 'whats', 'doesnt', 'didnt',
})

_NON_ALNUM = re.compile(r'[\W_]')


class HeuristicClassifier:
    """Word-list sentiment, title summary, frequency-free keywords."""

    model_id = HEURISTIC_MODEL_ID

    def classify(self, title: str, body: str) -> AnalysisResult:
        title = title or ''
        text = f"{title} {body or ''}".lower()
        tokens = text.split()

        return AnalysisResult(
            sentiment=self.sentiment(tokens),
            summary=self.summary(title),
            keywords=tuple(self.keywords(tokens)),
            provenance=Provenance.FALLBACK,
            model_id=self.model_id,
        )

    def sentiment(self, tokens: List[str]) -> Sentiment:
        words = [_NON_ALNUM.sub('', t) for t in tokens]
        positive = sum(1 for w in words if w in POSITIVE_WORDS)
        negative = sum(1 for w in words if w in NEGATIVE_WORDS)

        if positive > negative and positive > 0:
            return Sentiment.POSITIVE
        if negative > positive and negative > 0:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL

    def summary(self, title: str) -> str:
        title = title.strip()
        if not title:
            return EMPTY_TITLE_SUMMARY
        if len(title) > SUMMARY_WIDTH:
            return title[:SUMMARY_WIDTH] + "..."
        return title

    def keywords(self, tokens: List[str]) -> List[str]:
        found: List[str] = []
        for token in tokens:
            if _is_url(token):
                continue
            word = _NON_ALNUM.sub('', token)
            if len(word) < MIN_KEYWORD_LENGTH or word in STOP_WORDS:
                continue
            if word in found:
                continue
            found.append(word)
            if len(found) == MAX_HEURISTIC_KEYWORDS:
                break
        return found


def _is_url(token: str) -> bool:
    return '://' in token or token.startswith('www.')
