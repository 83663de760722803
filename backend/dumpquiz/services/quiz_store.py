"""Chunked persistence of quizzes and progress records.

A quiz is stored as one metadata item plus ``chunkCount`` chunk items in the
owner's partition::

    (owner, "<quizId>")            -> {owner, quizId, name, questionCount, chunkCount, ...}
    (owner, "<quizId>#chunk#0")    -> {owner, quizId, questions: [...]}
    (owner, "<quizId>#chunk#1")    -> ...

Chunks never carry ``name``, which is how listing tells the two apart.
Writes go metadata first, then chunks in index order; deletes go chunks
first, then metadata, then progress. Nothing is transactional: a crash can
leave orphaned chunks behind, and readers skip chunks that are missing.
"""
import logging
import re
import time
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..config import QUIZ_CHUNK_SIZE, QUIZZES_TABLE, PROGRESS_TABLE, ITEM_SIZE_LIMIT_BYTES
from ..models import ProgressRecord, Question, QuizMeta
from .document_store import DocumentStore, ItemTooLargeError, has_attribute, item_size

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def chunk_questions(questions: Sequence[Question], size: int) -> List[List[Question]]:
    """Split questions into consecutive groups of at most ``size``."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [list(questions[i:i + size]) for i in range(0, len(questions), size)]


def chunk_key(quiz_id: str, index: int) -> str:
    return f"{quiz_id}#chunk#{index}"


def make_quiz_id(name: str, created_at: int) -> str:
    """Slug of the quiz name plus its creation time in milliseconds."""
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower())
    return f"{slug}-{created_at}"


class QuizStore:
    """Reads and writes quizzes and progress for any owner."""

    def __init__(self, quizzes: DocumentStore, progress: DocumentStore, chunk_size: int = QUIZ_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("Chunk size must be at least 1")
        self.quizzes = quizzes
        self.progress = progress
        self.chunk_size = chunk_size

    @classmethod
    def from_session(cls, db: Session, chunk_size: int = QUIZ_CHUNK_SIZE) -> "QuizStore":
        return cls(
            DocumentStore(db, QUIZZES_TABLE, ITEM_SIZE_LIMIT_BYTES),
            DocumentStore(db, PROGRESS_TABLE, ITEM_SIZE_LIMIT_BYTES),
            chunk_size=chunk_size,
        )

    def save_quiz(self, owner: str, name: str, questions: Sequence[Question],
                  created_at: Optional[int] = None) -> QuizMeta:
        """Write metadata, then every chunk in index order.

        Chunk sizes are checked up front, so an oversized chunk fails the
        save before anything is written.
        """
        created_at = created_at or now_ms()
        chunks = chunk_questions(questions, self.chunk_size)
        meta = QuizMeta(
            owner=owner,
            quiz_id=make_quiz_id(name, created_at),
            name=name,
            question_count=len(questions),
            chunk_count=len(chunks),
            created_at=created_at,
            updated_at=created_at,
        )

        items = [
            {
                "owner": owner,
                "quizId": chunk_key(meta.quiz_id, index),
                "questions": [q.to_dict() for q in chunk],
            }
            for index, chunk in enumerate(chunks)
        ]
        for item in items:
            size = item_size(item)
            if size > self.quizzes.max_item_bytes:
                raise ItemTooLargeError(size, self.quizzes.max_item_bytes)

        self.quizzes.put(owner, meta.quiz_id, meta.to_item())
        for item in items:
            self.quizzes.put(owner, item["quizId"], item)

        logger.info(f"Saved quiz {meta.quiz_id}: {meta.question_count} questions in {meta.chunk_count} chunks")
        return meta

    def get_meta(self, owner: str, quiz_id: str) -> Optional[QuizMeta]:
        item = self.quizzes.get(owner, quiz_id)
        if not item or "name" not in item:
            return None
        return QuizMeta.from_item(item)

    def get_quiz(self, owner: str, quiz_id: str) -> Optional[Tuple[QuizMeta, List[Question]]]:
        """Metadata and the reassembled questions, or None if the quiz is unknown."""
        meta = self.get_meta(owner, quiz_id)
        if meta is None:
            return None

        questions = []
        for index in range(meta.chunk_count):
            chunk = self.quizzes.get(owner, chunk_key(quiz_id, index))
            if chunk is None:
                logger.warning(f"Quiz {quiz_id} is missing chunk {index}; continuing without it")
                continue
            questions.extend(Question.from_dict(q) for q in chunk.get("questions", []))

        return meta, questions

    def list_quizzes(self, owner: str) -> List[QuizMeta]:
        """Metadata of every quiz of an owner, newest first."""
        items = self.quizzes.query(owner, has_attribute("name"))
        metas = [QuizMeta.from_item(i) for i in items]
        return sorted(metas, key=lambda m: m.created_at, reverse=True)

    def delete_quiz(self, owner: str, quiz_id: str) -> None:
        """Delete chunks, metadata and progress, in that order."""
        meta = self.get_meta(owner, quiz_id)
        if meta:
            for index in range(meta.chunk_count):
                self.quizzes.delete(owner, chunk_key(quiz_id, index))

        self.quizzes.delete(owner, quiz_id)
        self.progress.delete(owner, quiz_id)
        logger.info(f"Deleted quiz {quiz_id}")

    def save_progress(self, record: ProgressRecord) -> None:
        """Overwrite the progress record; callers pass the complete state."""
        self.progress.put(record.owner, record.quiz_id, record.to_item())

    def get_progress(self, owner: str, quiz_id: str) -> Optional[ProgressRecord]:
        item = self.progress.get(owner, quiz_id)
        return ProgressRecord.from_item(item) if item else None

    def list_progress(self, owner: str) -> List[ProgressRecord]:
        return [ProgressRecord.from_item(i) for i in self.progress.query(owner)]

    def clear_progress(self, owner: str, quiz_id: str) -> None:
        self.progress.delete(owner, quiz_id)
