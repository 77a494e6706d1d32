"""TF-IDF similarity index over stored performances.

Stands in for an embedding/vector store: it ranks documents by cosine
similarity between a free-text "vibe" query and each performance's
title, genre and description.
"""

from typing import List, Dict, Any, Optional
import os
import joblib

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import linear_kernel


def document_text(doc: Dict[str, Any]) -> str:
    return " \n ".join(
        (doc.get(k) or "") for k in ("title", "genre", "place_name", "description")
    )


class PerformanceIndexer:
    """A small TF-IDF index for performance documents.

    Documents are dicts with at least 'id' and 'title'; 'genre',
    'place_name' and 'description' are used when present.
    """

    def __init__(self):
        self.vectorizer: Optional[TfidfVectorizer] = None
        self.doc_ids: List[str] = []
        self.docs: List[Dict[str, Any]] = []
        self.tfidf_matrix = None

    @property
    def fitted(self) -> bool:
        return self.vectorizer is not None and self.tfidf_matrix is not None

    def fit(self, docs: List[Dict[str, Any]]):
        """Fit the TF-IDF model from documents.

        Korean text is matched on character n-grams within word boundaries,
        which copes with particles glued to nouns ("공연을", "공연이").
        """
        self.docs = docs
        self.doc_ids = [str(d.get("id", i)) for i, d in enumerate(docs)]
        texts = [document_text(d) for d in docs]
        self.vectorizer = TfidfVectorizer(
            analyzer="char_wb", ngram_range=(2, 3), max_features=20000
        )
        self.tfidf_matrix = self.vectorizer.fit_transform(texts)

    def search(self, query: str, top_k: int = 5) -> List[Dict[str, Any]]:
        """Return the top_k documents with a 'similarity' score in [0, 1]."""
        if not self.fitted:
            raise RuntimeError("Index has not been fitted yet")

        q_vec = self.vectorizer.transform([query])
        similarities = linear_kernel(q_vec, self.tfidf_matrix).flatten()
        top_indices = (-similarities).argsort(kind="stable")[:top_k]
        results = []
        for idx in top_indices:
            doc = dict(self.docs[idx])
            doc["similarity"] = float(similarities[idx])
            results.append(doc)
        return results

    def save(self, path: str):
        """Save the indexer (vectorizer, docs, matrix) with joblib."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        joblib.dump(
            {
                "vectorizer": self.vectorizer,
                "doc_ids": self.doc_ids,
                "docs": self.docs,
                "tfidf_matrix": self.tfidf_matrix,
            },
            path,
        )

    def load(self, path: str):
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        state = joblib.load(path)
        self.vectorizer = state.get("vectorizer")
        self.doc_ids = state.get("doc_ids", [])
        self.docs = state.get("docs", [])
        self.tfidf_matrix = state.get("tfidf_matrix")
