"""TF-IDF lexical index used as the last-resort retrieval path."""

from collections import Counter
import math
from typing import Iterable

from .similarity import cosine, sort_results
from .tokenize import tokenize
from .types import Document, ScoredResult


class TfIdfIndex:
    """Inverse-document-frequency weighted index over a fixed corpus.

    The vocabulary and weights are frozen at construction time; index a new
    corpus by building a new instance. Querying is O(terms x documents),
    which is fine for a fallback over a personal vault.
    """

    def __init__(self, documents: Iterable[Document]):
        corpus: dict[str, str] = {}
        for doc in documents:
            corpus[doc.path] = doc.text

        self._tokens: dict[str, tuple[str, ...]] = {
            path: tuple(tokenize(text)) for path, text in corpus.items()
        }

        df: Counter[str] = Counter()
        for tokens in self._tokens.values():
            df.update(set(tokens))

        doc_count = len(self._tokens)
        # ln(N / (1 + df)); terms present in every document get a weight <= 0
        self._idf: dict[str, float] = {
            term: math.log(doc_count / (1 + count)) for term, count in df.items()
        }
        self._terms: tuple[str, ...] = tuple(self._idf)
        self._doc_vectors: dict[str, list[float]] = {
            path: self.vectorize(tokens) for path, tokens in self._tokens.items()
        }

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def vocabulary_size(self) -> int:
        return len(self._terms)

    def tokens(self, path: str) -> tuple[str, ...]:
        return self._tokens[path]

    def idf(self, term: str) -> float | None:
        return self._idf.get(term)

    def vectorize(self, tokens: Iterable[str]) -> list[float]:
        """Weighted term-frequency vector over the index vocabulary."""
        tf = Counter(tokens)
        return [tf.get(term, 0) * self._idf[term] for term in self._terms]

    def search(self, query: str) -> list[ScoredResult]:
        """Score every document against the query, best first."""
        query_vector = self.vectorize(tokenize(query))
        return sort_results(
            ScoredResult(path=path, score=cosine(query_vector, doc_vector))
            for path, doc_vector in self._doc_vectors.items()
        )
