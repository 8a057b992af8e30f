"""Lexical query construction."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import jieba

jieba.setLogLevel(logging.WARNING)

logger = logging.getLogger(__name__)

DEFAULT_STOPWORDS_PATH = Path(__file__).with_name("stopwords.txt")
OR_SEPARATOR = " OR "

_WORD_RE = re.compile(r"\w", re.UNICODE)


def load_stopwords(path: Path | None = None) -> frozenset[str]:
    """Read one stop-word per line; a missing file yields an empty set."""
    source = path or DEFAULT_STOPWORDS_PATH
    if not source.exists():
        logger.error("Stop-word file %s not found; lexical queries keep every token", source)
        return frozenset()
    with source.open("r", encoding="utf-8") as fh:
        words = frozenset(line.strip().lower() for line in fh if line.strip())
    logger.info("Loaded %s stop-words from %s", len(words), source)
    return words


def segment(text: str) -> list[str]:
    """Split text into word-like tokens, including CJK runs without spaces."""
    tokens = []
    for token in jieba.lcut_for_search(text):
        token = token.strip()
        if token and _WORD_RE.search(token):
            tokens.append(token)
    return tokens


class LexicalQueryBuilder:
    """Turns a question into a disjunctive full-text query."""

    def __init__(self, stopwords: Iterable[str] | None = None) -> None:
        self.stopwords = frozenset(stopwords) if stopwords is not None else load_stopwords()

    @classmethod
    def from_path(cls, path: Path | None) -> "LexicalQueryBuilder":
        return cls(load_stopwords(path))

    def terms(self, query: str) -> list[str]:
        tokens = segment(query)
        filtered = [token for token in tokens if token.lower() not in self.stopwords]
        return _dedupe(filtered or tokens)

    def build(self, query: str) -> str:
        terms = self.terms(query)
        if not terms:
            return query
        return OR_SEPARATOR.join(terms)


def _dedupe(tokens: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for token in tokens:
        key = token.lower()
        if key not in seen:
            seen.add(key)
            ordered.append(token)
    return ordered


__all__ = ["LexicalQueryBuilder", "load_stopwords", "segment", "OR_SEPARATOR"]
