"""SQLAlchemy models and the quiz domain records."""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, PrimaryKeyConstraint

from .database import Base


class User(Base):
    """A registered user. `identity_id` is the opaque owner key in the store."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(String(64), unique=True, index=True, default=lambda: uuid.uuid4().hex)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=True)
    is_admin = Column(Boolean, default=False)
    enabled = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identity_id": self.identity_id,
            "email": self.email,
            "display_name": self.display_name or self.email.split("@")[0],
            "is_admin": bool(self.is_admin),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class StoreItem(Base):
    """One document of the key-value store.

    `table_name` namespaces logical tables, (`partition_key`, `sort_key`)
    identifies the item and `body` holds the full document.
    """
    __tablename__ = "store_items"
    __table_args__ = (
        PrimaryKeyConstraint("table_name", "partition_key", "sort_key"),
    )

    table_name = Column(String(64), nullable=False)
    partition_key = Column(String(128), nullable=False)
    sort_key = Column(String(255), nullable=False)
    body = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


@dataclass(frozen=True)
class Choice:
    """A lettered answer option."""
    letter: str
    text: str

    def to_dict(self) -> dict:
        return {"letter": self.letter, "text": self.text}


@dataclass(frozen=True)
class Question:
    """A parsed exam question.

    `answer` holds the correct letters; each of them appears in `choices`.
    Values are immutable, transforms build new instances with `replace`.
    """
    number: int
    text: str
    choices: Tuple[Choice, ...]
    answer: Tuple[str, ...]
    explanation: str = ""

    @property
    def letters(self) -> List[str]:
        return [c.letter for c in self.choices]

    def with_choices(self, choices: List[Choice], answer: List[str]) -> "Question":
        return replace(self, choices=tuple(choices), answer=tuple(answer))

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "text": self.text,
            "choices": [c.to_dict() for c in self.choices],
            "answer": list(self.answer),
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            number=int(data["number"]),
            text=data["text"],
            choices=tuple(Choice(letter=c["letter"], text=c["text"]) for c in data.get("choices", [])),
            answer=tuple(data.get("answer", [])),
            explanation=data.get("explanation") or "",
        )


@dataclass
class QuizMeta:
    """Header record of a stored quiz."""
    owner: str
    quiz_id: str
    name: str
    question_count: int
    chunk_count: int
    created_at: int
    updated_at: int

    def to_item(self) -> dict:
        return {
            "owner": self.owner,
            "quizId": self.quiz_id,
            "name": self.name,
            "questionCount": self.question_count,
            "chunkCount": self.chunk_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_item(cls, item: dict) -> "QuizMeta":
        return cls(
            owner=item["owner"],
            quiz_id=item["quizId"],
            name=item["name"],
            question_count=int(item.get("questionCount", 0)),
            chunk_count=int(item.get("chunkCount", 0)),
            created_at=int(item.get("createdAt", 0)),
            updated_at=int(item.get("updatedAt", 0)),
        )


# question number -> selected letters
AnswerMap = Dict[int, List[str]]


@dataclass
class ProgressRecord:
    """Saved state of one user's pass through one quiz."""
    owner: str
    quiz_id: str
    current_index: int = 0
    user_answers: AnswerMap = field(default_factory=dict)
    known_questions: List[int] = field(default_factory=list)
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    score: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_item(self) -> dict:
        item = {
            "owner": self.owner,
            "quizId": self.quiz_id,
            "currentIndex": self.current_index,
            "userAnswers": {str(k): list(v) for k, v in self.user_answers.items()},
            "knownQuestions": list(self.known_questions),
        }
        # Optional fields are omitted rather than stored as null
        if self.started_at is not None:
            item["startedAt"] = self.started_at
        if self.completed_at is not None:
            item["completedAt"] = self.completed_at
        if self.score is not None:
            item["score"] = self.score
        return item

    @classmethod
    def from_item(cls, item: dict) -> "ProgressRecord":
        return cls(
            owner=item["owner"],
            quiz_id=item["quizId"],
            current_index=int(item.get("currentIndex", 0)),
            user_answers={int(k): list(v) for k, v in (item.get("userAnswers") or {}).items()},
            known_questions=[int(n) for n in item.get("knownQuestions") or []],
            started_at=item.get("startedAt"),
            completed_at=item.get("completedAt"),
            score=item.get("score"),
        )
