"""Grading of a working set against a user's answer map."""
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence

from ..models import Question


@dataclass
class Evaluation:
    """Outcome of grading one working set."""
    total: int
    correct_numbers: List[int] = field(default_factory=list)
    wrong_questions: List[Question] = field(default_factory=list)

    @property
    def correct_count(self) -> int:
        return len(self.correct_numbers)

    @property
    def wrong_count(self) -> int:
        return len(self.wrong_questions)

    @property
    def score(self) -> int:
        return calculate_score(self.correct_count, self.total)

    def to_dict(self) -> dict:
        return {
            "total_questions": self.total,
            "correct_count": self.correct_count,
            "wrong_count": self.wrong_count,
            "score": self.score,
            "correct_numbers": self.correct_numbers,
            "wrong_numbers": [q.number for q in self.wrong_questions],
        }


def is_correct(question: Question, selected: Optional[Iterable[str]]) -> bool:
    """True when the selection matches the answer key exactly.

    A missing or empty selection counts as unanswered.
    """
    chosen = set(selected or [])
    expected = set(question.answer)
    return len(chosen) == len(expected) and chosen >= expected


def calculate_score(correct: int, total: int) -> int:
    """Percentage rounded to the nearest integer, halves rounded up."""
    if total <= 0:
        return 0
    # Integer form of floor(correct * 100 / total + 0.5)
    return (correct * 200 + total) // (2 * total)


def evaluate(questions: Sequence[Question], answers: Mapping[int, Iterable[str]]) -> Evaluation:
    """Grade every question of the working set."""
    result = Evaluation(total=len(questions))
    for question in questions:
        if is_correct(question, answers.get(question.number)):
            result.correct_numbers.append(question.number)
        else:
            result.wrong_questions.append(question)
    return result


def wrong_questions(questions: Sequence[Question], answers: Mapping[int, Iterable[str]]) -> List[Question]:
    """Questions of the working set answered incorrectly, in working-set order."""
    return evaluate(questions, answers).wrong_questions
