"""In-memory inverted index over document content and file names."""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from docsearch.models import IndexedDocument, SearchOptions, SearchResponse
from docsearch.utils.text import tokenize

LOGGER = logging.getLogger(__name__)


class _Postings:
    """Token -> document ids, with the reverse mapping kept for removal."""

    def __init__(self) -> None:
        self.by_token: Dict[str, Set[str]] = defaultdict(set)
        self.by_doc: Dict[str, Set[str]] = {}

    def add(self, doc_id: str, tokens: Iterable[str]) -> None:
        unique = set(tokens)
        self.by_doc[doc_id] = unique
        for token in unique:
            self.by_token[token].add(doc_id)

    def remove(self, doc_id: str) -> None:
        for token in self.by_doc.pop(doc_id, ()):
            ids = self.by_token.get(token)
            if ids is None:
                continue
            ids.discard(doc_id)
            if not ids:
                del self.by_token[token]

    def match_term(self, term: str) -> Set[str]:
        """Ids having a token that contains ``term``."""
        matched: Set[str] = set(self.by_token.get(term, ()))
        for token, ids in self.by_token.items():
            if term in token:
                matched |= ids
        return matched

    def match_all(self, terms: List[str]) -> Set[str]:
        result: Set[str] | None = None
        for term in terms:
            ids = self.match_term(term)
            result = ids if result is None else result & ids
            if not result:
                return set()
        return result or set()

    def clear(self) -> None:
        self.by_token.clear()
        self.by_doc.clear()


class LexicalIndex:
    """Substring/token search with a per-document metadata side map.

    Matching is case-insensitive: every query term must be a substring of
    some indexed token. Content matches and file-name matches are unioned and
    results come back in document insertion order.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, IndexedDocument] = {}
        self._content = _Postings()
        self._names = _Postings()
        self._name_text: Dict[str, str] = {}
        self._lock = threading.RLock()

    def add(self, doc: IndexedDocument, content: str) -> None:
        if not doc.id:
            raise ValueError("Document id is required")
        with self._lock:
            if doc.id in self._documents:
                self._remove_locked(doc.id)
            name_text = f"{doc.file_name} {doc.original_name}".lower()
            self._documents[doc.id] = doc
            self._content.add(doc.id, tokenize(content or ""))
            self._names.add(doc.id, tokenize(name_text))
            self._name_text[doc.id] = name_text
            LOGGER.debug(
                "Indexed %s (%s); %d documents in lexical index",
                doc.file_name,
                doc.id,
                len(self._documents),
            )

    def update(self, doc: IndexedDocument, content: str) -> None:
        with self._lock:
            self.remove(doc.id)
            self.add(doc, content)

    def remove(self, doc_id: str) -> bool:
        with self._lock:
            if doc_id not in self._documents:
                LOGGER.debug("Lexical remove ignored, %s is not indexed", doc_id)
                return False
            self._remove_locked(doc_id)
            return True

    def _remove_locked(self, doc_id: str) -> None:
        self._documents.pop(doc_id, None)
        self._content.remove(doc_id)
        self._names.remove(doc_id)
        self._name_text.pop(doc_id, None)

    def ids_matching(self, query: str) -> List[str]:
        """All matching ids in insertion order, unfiltered and unpaginated."""
        if not query or not query.strip():
            return []
        needle = query.strip().lower()
        terms = tokenize(needle)
        with self._lock:
            matched: Set[str] = set()
            if terms:
                matched |= self._content.match_all(terms)
                matched |= self._names.match_all(terms)
            matched |= {
                doc_id for doc_id, text in self._name_text.items() if needle in text
            }
            return [doc_id for doc_id in self._documents if doc_id in matched]

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        options = options or SearchOptions()
        started = time.perf_counter()
        if not query or not query.strip():
            return SearchResponse(results=[], total=0, query=query or "", elapsed_ms=0)

        file_types = options.normalized_file_types()
        with self._lock:
            docs = [self._documents[doc_id] for doc_id in self.ids_matching(query)]
        if file_types:
            docs = [doc for doc in docs if doc.file_extension.lower() in file_types]

        page = docs[options.offset : options.offset + options.limit]
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.debug(
            "Lexical search %r matched %d documents in %dms", query, len(docs), elapsed_ms
        )
        return SearchResponse(results=page, total=len(docs), query=query, elapsed_ms=elapsed_ms)

    def get_document(self, doc_id: str) -> IndexedDocument | None:
        with self._lock:
            return self._documents.get(doc_id)

    def all_documents(self) -> List[IndexedDocument]:
        with self._lock:
            return list(self._documents.values())

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "document_count": len(self._documents),
                "token_count": len(self._content.by_token),
            }

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._content.clear()
            self._names.clear()
            self._name_text.clear()
        LOGGER.info("Cleared lexical index")
