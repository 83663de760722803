"""Quiz session service: working sets, progress and grading."""
import logging
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import AnswerMap, ProgressRecord, Question, QuizMeta
from .quiz_store import QuizStore, now_ms
from .scoring import Evaluation, evaluate, wrong_questions
from .shuffle import shuffle_all_choices, shuffle_questions

logger = logging.getLogger(__name__)


@dataclass
class QuizSettings:
    """Options chosen before starting a pass."""
    shuffle_questions: bool = False
    shuffle_choices: bool = False
    exclude_known: bool = False


def build_working_set(
    questions: Sequence[Question],
    settings: QuizSettings,
    known_questions: Iterable[int] = (),
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Apply known-question filtering, then question and choice shuffling."""
    working = list(questions)

    known = set(known_questions)
    if settings.exclude_known and known:
        working = [q for q in working if q.number not in known]

    if settings.shuffle_questions:
        working = shuffle_questions(working, rng)

    if settings.shuffle_choices:
        working = shuffle_all_choices(working, rng)

    return working


def clean_answers(answers: Dict[int, Iterable[str]]) -> AnswerMap:
    """Uppercase letters and drop empty selections, which mean unanswered."""
    cleaned = {}
    for number, letters in (answers or {}).items():
        selected = list(dict.fromkeys(str(a).upper() for a in letters or []))
        if selected:
            cleaned[int(number)] = selected
    return cleaned


class SessionService:
    """Service for running quiz passes of one owner."""

    def __init__(self, store: QuizStore, owner: str, rng: Optional[random.Random] = None):
        self.store = store
        self.owner = owner
        self.rng = rng

    def _load(self, quiz_id: str) -> Tuple[QuizMeta, List[Question]]:
        result = self.store.get_quiz(self.owner, quiz_id)
        if result is None:
            raise LookupError(f"Quiz {quiz_id} not found")
        return result

    def _graded_working_set(self, quiz_id: str, working_set: Sequence[Question]) -> List[Question]:
        """Working set as presented, with answer keys taken from the stored quiz.

        Submitted questions must match a stored question by number and choice
        texts. Correct letters are found through choice text, so shuffled
        lettering still grades against the stored key.
        """
        _, stored = self._load(quiz_id)
        by_number: Dict[int, List[Question]] = {}
        for question in stored:
            by_number.setdefault(question.number, []).append(question)

        graded = []
        for submitted in working_set:
            texts = sorted(c.text for c in submitted.choices)
            match = next(
                (q for q in by_number.get(submitted.number, [])
                 if sorted(c.text for c in q.choices) == texts),
                None,
            )
            if match is None:
                raise ValueError(f"Question {submitted.number} is not part of quiz {quiz_id}")

            correct_texts = {c.text for c in match.choices if c.letter in match.answer}
            answer = [c.letter for c in submitted.choices if c.text in correct_texts]
            graded.append(submitted.with_choices(list(submitted.choices), answer))
        return graded

    def get_progress(self, quiz_id: str) -> Optional[ProgressRecord]:
        return self.store.get_progress(self.owner, quiz_id)

    def known_questions(self, quiz_id: str) -> List[int]:
        progress = self.get_progress(quiz_id)
        return list(progress.known_questions) if progress else []

    def start(self, quiz_id: str, settings: QuizSettings) -> Tuple[List[Question], ProgressRecord]:
        """Build a working set and reset progress to the first question."""
        _, questions = self._load(quiz_id)
        known = self.known_questions(quiz_id)

        working = build_working_set(questions, settings, known, self.rng)
        if not working:
            raise ValueError("No questions left to practice")

        record = ProgressRecord(
            owner=self.owner,
            quiz_id=quiz_id,
            current_index=0,
            user_answers={},
            known_questions=known,
            started_at=now_ms(),
        )
        self.store.save_progress(record)
        return working, record

    def resume(self, quiz_id: str) -> Tuple[List[Question], Optional[ProgressRecord]]:
        """Questions in canonical order plus the unfinished progress, if any."""
        _, questions = self._load(quiz_id)
        progress = self.get_progress(quiz_id)

        if progress is None or progress.is_completed:
            return questions, None

        if progress.started_at is None:
            # Records saved before start times were tracked
            progress.started_at = now_ms()
        return questions, progress

    def save_progress(
        self,
        quiz_id: str,
        current_index: int,
        answers: Dict[int, Iterable[str]],
        known_questions: Optional[Iterable[int]] = None,
        started_at: Optional[int] = None,
    ) -> ProgressRecord:
        """Overwrite progress after a navigation step."""
        if current_index < 0:
            raise ValueError("current_index must not be negative")

        if known_questions is None:
            known_questions = self.known_questions(quiz_id)

        record = ProgressRecord(
            owner=self.owner,
            quiz_id=quiz_id,
            current_index=current_index,
            user_answers=clean_answers(answers),
            known_questions=sorted(set(known_questions)),
            started_at=started_at,
        )
        self.store.save_progress(record)
        return record

    def toggle_known(self, quiz_id: str, number: int) -> ProgressRecord:
        """Flag or unflag a question as known, keeping the rest of the record."""
        progress = self.get_progress(quiz_id) or ProgressRecord(owner=self.owner, quiz_id=quiz_id)

        known = list(progress.known_questions)
        if number in known:
            known.remove(number)
        else:
            known.append(number)
        progress.known_questions = known

        self.store.save_progress(progress)
        return progress

    def finish(
        self,
        quiz_id: str,
        working_set: Sequence[Question],
        answers: Dict[int, Iterable[str]],
    ) -> Tuple[Evaluation, ProgressRecord]:
        """Grade the working set and persist the completed record."""
        if not working_set:
            raise ValueError("Working set is empty")

        working_set = self._graded_working_set(quiz_id, working_set)
        cleaned = clean_answers(answers)
        result = evaluate(working_set, cleaned)
        previous = self.get_progress(quiz_id)

        record = ProgressRecord(
            owner=self.owner,
            quiz_id=quiz_id,
            current_index=0,
            user_answers=cleaned,
            known_questions=list(previous.known_questions) if previous else [],
            started_at=previous.started_at if previous else None,
            completed_at=now_ms(),
            score=result.score,
        )
        self.store.save_progress(record)
        logger.info(f"Finished {quiz_id}: {result.correct_count}/{result.total} ({result.score})")
        return result, record

    def retry(self, quiz_id: str) -> None:
        """Start over from scratch: the saved progress is discarded."""
        self.store.clear_progress(self.owner, quiz_id)

    def retry_wrong(
        self,
        quiz_id: str,
        working_set: Sequence[Question],
        answers: Dict[int, Iterable[str]],
    ) -> List[Question]:
        """Working set for a wrong-answers-only pass. Nothing is persisted."""
        working_set = self._graded_working_set(quiz_id, working_set)
        wrong = wrong_questions(working_set, clean_answers(answers))
        if not wrong:
            raise ValueError("No wrong answers to retry")
        return wrong
