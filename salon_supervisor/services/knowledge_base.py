import re
from typing import Callable, List, Optional
from datetime import datetime

from salon_supervisor.core.errors import NotFoundError
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.database import SQLiteCollection
from salon_supervisor.models.schemas import KnowledgeEntry, KnowledgeEntryCreate, utc_now

logger = get_plain_logger(__name__)

SIMILARITY_THRESHOLD = 0.7

_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_question(text: str) -> str:
    """
    Canonical matching key for a question

    Lower-cases, trims, drops anything that is not an ASCII letter, digit,
    underscore or whitespace and collapses whitespace runs to one space.
    """
    key = text.lower().strip()
    key = _NON_WORD.sub("", key)
    return _WHITESPACE.sub(" ", key).strip()


def similarity(query_key: str, candidate_key: str) -> float:
    """
    Share of words in common between two normalized keys

    Each query word counts once if it appears anywhere in the candidate.
    The count is divided by the longer of the two word lists, so word
    order and stemming are ignored.
    """
    query_words = query_key.split(" ")
    candidate_words = candidate_key.split(" ")
    candidates = set(candidate_words)

    matches = sum(1 for word in query_words if word in candidates)
    return matches / max(len(query_words), len(candidate_words))


class KnowledgeBaseService:
    """
    Knowledge base for AI agent learning
    Entries are append-only: added by supervisor resolutions or admins,
    removed only by an explicit delete
    """

    def __init__(
        self,
        collection: SQLiteCollection,
        clock: Callable[[], datetime] = utc_now,
        threshold: float = SIMILARITY_THRESHOLD,
    ):
        self.collection = collection
        self.clock = clock
        self.threshold = threshold

    async def add_entry(self, entry: KnowledgeEntryCreate) -> KnowledgeEntry:
        created_at = self.clock()
        doc = entry.model_dump()
        doc["created_at"] = created_at

        kb_id = self.collection.insert(doc)
        knowledge_entry = KnowledgeEntry(id=kb_id, created_at=created_at, **entry.model_dump())

        logger.info(f"✨ Added new KB entry #{kb_id}: {entry.question_text}")
        return knowledge_entry

    async def find_match(self, question: str) -> Optional[KnowledgeEntry]:
        """
        Search for a stored answer to the question

        An exact key match always wins; duplicates resolve to the earliest
        created entry. Otherwise every entry is scanned in insertion order
        and the first one scoring strictly above the threshold is returned.
        """
        key = normalize_question(question)

        exact = self.collection.query(
            filters=[("question_key", "==", key)],
            order_by="created_at",
            limit=1,
        )
        if exact:
            entry = KnowledgeEntry.model_validate(exact[0])
            logger.info(f"✓ KB exact hit #{entry.id}: '{entry.question_text}'")
            return entry

        # Full scan; fine for the small knowledge bases this serves
        for doc in self.collection.query():
            score = similarity(key, doc["question_key"])
            if score > self.threshold:
                entry = KnowledgeEntry.model_validate(doc)
                logger.info(f"✓ KB fuzzy hit #{entry.id} ({score:.2f}): '{entry.question_text}'")
                return entry

        logger.info(f"✗ No KB match for: '{question}'")
        return None

    async def get_all_entries(self) -> List[KnowledgeEntry]:
        docs = self.collection.query(order_by="created_at", descending=True)
        return [KnowledgeEntry.model_validate(d) for d in docs]

    async def delete_entry(self, kb_id: str) -> None:
        """Hard delete; unknown ids raise NotFoundError"""
        if not self.collection.delete_by_id(kb_id):
            raise NotFoundError(f"Knowledge entry {kb_id} not found")
        logger.info(f"Deleted KB entry #{kb_id}")
