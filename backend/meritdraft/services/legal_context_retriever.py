"""
Pulls legal authority for one criterion out of the vector store.

One query embedding per criterion, then three independent similarity
searches: regulations (3), winning appeal arguments (3) and precedent
holdings (2). A failed search costs only its own partition; a failed
embedding fails the whole retrieval.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List

from meritdraft.db.models import LegalChunk, LegalSourceType
from meritdraft.services.criteria import MERITS_LEGAL_STANDARD, MERITS_STANDARD_OF_PROOF
from meritdraft.services.embedding_client import RETRIEVAL_QUERY

logger = logging.getLogger(__name__)

MAX_FIELD_TOKENS = 5

_FILLER_PREFIX = re.compile(
    r"^(?:i am an|i am a|i specialize in|i work in|my field is|field of|area of)\b\s*",
    re.IGNORECASE,
)


def sanitize_field_of_expertise(field_of_expertise: str) -> str:
    """
    Reduce a free-text field to a short canonical phrase for query text.

    "I am a researcher in Artificial Intelligence" -> "researcher in Artificial Intelligence"
    """
    value = (field_of_expertise or "").strip()
    while True:
        stripped = _FILLER_PREFIX.sub("", value, count=1).strip()
        if stripped == value:
            break
        value = stripped
    return " ".join(value.split()[:MAX_FIELD_TOKENS])


def build_query_text(criterion: str, field_of_expertise: str, fact_summary: str) -> str:
    sanitized = sanitize_field_of_expertise(field_of_expertise)
    return f"[CRITERION: {criterion}] [FIELD: {sanitized}] {fact_summary}"


def merits_fact_summary(field_of_expertise: str) -> str:
    return f"Final Merits {MERITS_LEGAL_STANDARD} {MERITS_STANDARD_OF_PROOF} {field_of_expertise}"


@dataclass
class RetrievedContext:
    regulations: List[LegalChunk] = field(default_factory=list)
    appeals: List[LegalChunk] = field(default_factory=list)
    cases: List[LegalChunk] = field(default_factory=list)


class LegalContextRetriever:
    """
    ``chunk_store`` must offer ``search_by_criterion`` (see
    ``LegalChunkRepository``); ``embedding_client`` must offer ``embed``.
    """

    def __init__(
        self,
        chunk_store,
        embedding_client,
        *,
        regulation_limit: int = 3,
        appeal_limit: int = 3,
        case_limit: int = 2,
        merits_limit: int = 5,
    ) -> None:
        if chunk_store is None:
            raise ValueError("chunk_store is required")
        if embedding_client is None:
            raise ValueError("embedding_client is required")
        self.chunk_store = chunk_store
        self.embedding_client = embedding_client
        self.regulation_limit = regulation_limit
        self.appeal_limit = appeal_limit
        self.case_limit = case_limit
        self.merits_limit = merits_limit

    def _search(self, embedding, criterion_tag: str, source_type: LegalSourceType, limit: int) -> List[LegalChunk]:
        try:
            return list(self.chunk_store.search_by_criterion(embedding, criterion_tag, source_type, limit))
        except Exception as exc:
            logger.warning(
                "Failed to retrieve %s chunks for criterion=%s: %s",
                source_type.value,
                criterion_tag or "<merits>",
                exc,
            )
            return []

    def retrieve(self, criterion: str, field_of_expertise: str, fact_summary: str) -> RetrievedContext:
        """
        Raises EmbeddingFailedError when the query vector cannot be built.
        """
        query_text = build_query_text(criterion, field_of_expertise, fact_summary)
        embedding = self.embedding_client.embed(query_text, RETRIEVAL_QUERY)

        context = RetrievedContext(
            regulations=self._search(embedding, criterion, LegalSourceType.regulation, self.regulation_limit),
            appeals=self._search(embedding, criterion, LegalSourceType.appeal_decision, self.appeal_limit),
            cases=self._search(embedding, criterion, LegalSourceType.precedent_case, self.case_limit),
        )
        logger.debug(
            "Retrieved context for %s: %d regulations, %d appeals, %d cases",
            criterion,
            len(context.regulations),
            len(context.appeals),
            len(context.cases),
        )
        return context

    def retrieve_merits_context(self, field_of_expertise: str) -> RetrievedContext:
        """
        Untagged search for the two-step test and the standard of proof.

        Regulation chunks are kept only when their legal standard names the
        two-step test; appeal chunks only when their citation names the
        standard-of-proof decision.
        """
        query_text = build_query_text("", field_of_expertise, merits_fact_summary(field_of_expertise))
        embedding = self.embedding_client.embed(query_text, RETRIEVAL_QUERY)

        regulations = [
            chunk
            for chunk in self._search(embedding, "", LegalSourceType.regulation, self.merits_limit)
            if chunk.legal_standard and MERITS_LEGAL_STANDARD in chunk.legal_standard
        ]
        appeals = [
            chunk
            for chunk in self._search(embedding, "", LegalSourceType.appeal_decision, self.merits_limit)
            if chunk.appeal_citation and MERITS_STANDARD_OF_PROOF in chunk.appeal_citation
        ]
        return RetrievedContext(regulations=regulations, appeals=appeals)
