"""API routes for quiz passes: start, progress, finish and retry."""
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..auth import require_auth
from ..models import Choice, ProgressRecord, Question, User
from ..services.quiz_store import QuizStore
from ..services.session_service import QuizSettings, SessionService
from .quizzes import get_quiz_store

router = APIRouter(prefix="/api/quizzes", tags=["session"])


class ChoiceModel(BaseModel):
    letter: str
    text: str


class QuestionModel(BaseModel):
    number: int
    text: str
    choices: List[ChoiceModel]
    answer: List[str]
    explanation: str = ""

    def to_question(self) -> Question:
        return Question(
            number=self.number,
            text=self.text,
            choices=tuple(Choice(letter=c.letter, text=c.text) for c in self.choices),
            answer=tuple(self.answer),
            explanation=self.explanation,
        )


class StartRequest(BaseModel):
    shuffle_questions: bool = False
    shuffle_choices: bool = False
    exclude_known: bool = False


class ProgressRequest(BaseModel):
    current_index: int = 0
    user_answers: Dict[int, List[str]] = {}
    known_questions: Optional[List[int]] = None
    started_at: Optional[int] = None


class WorkingSetRequest(BaseModel):
    questions: List[QuestionModel]
    user_answers: Dict[int, List[str]] = {}


def get_session_service(
    store: QuizStore = Depends(get_quiz_store),
    user: User = Depends(require_auth),
) -> SessionService:
    return SessionService(store, user.identity_id)


def progress_to_dict(record: Optional[ProgressRecord]) -> Optional[dict]:
    return record.to_item() if record else None


def _require_quiz(service: SessionService, quiz_id: str):
    if service.store.get_meta(service.owner, quiz_id) is None:
        raise HTTPException(status_code=404, detail="Quiz not found")


@router.get("/{quiz_id}/progress")
def get_progress(quiz_id: str, service: SessionService = Depends(get_session_service)):
    """Get saved progress; `progress` is null when nothing was saved."""
    return {"quiz_id": quiz_id, "progress": progress_to_dict(service.get_progress(quiz_id))}


@router.put("/{quiz_id}/progress")
def save_progress(
    quiz_id: str,
    request: ProgressRequest,
    service: SessionService = Depends(get_session_service),
):
    """Overwrite progress with the client's complete current state."""
    _require_quiz(service, quiz_id)
    try:
        record = service.save_progress(
            quiz_id,
            current_index=request.current_index,
            answers=request.user_answers,
            known_questions=request.known_questions,
            started_at=request.started_at,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "progress": record.to_item()}


@router.post("/{quiz_id}/start")
def start_quiz(
    quiz_id: str,
    request: StartRequest,
    service: SessionService = Depends(get_session_service),
):
    """Build a working set from the settings and reset progress."""
    settings = QuizSettings(
        shuffle_questions=request.shuffle_questions,
        shuffle_choices=request.shuffle_choices,
        exclude_known=request.exclude_known,
    )
    try:
        working, record = service.start(quiz_id, settings)
    except LookupError:
        raise HTTPException(status_code=404, detail="Quiz not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "quiz_id": quiz_id,
        "questions": [q.to_dict() for q in working],
        "total": len(working),
        "progress": record.to_item(),
    }


@router.get("/{quiz_id}/resume")
def resume_quiz(quiz_id: str, service: SessionService = Depends(get_session_service)):
    """Questions plus unfinished progress; `resumable` is false otherwise."""
    try:
        questions, progress = service.resume(quiz_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Quiz not found")

    return {
        "quiz_id": quiz_id,
        "questions": [q.to_dict() for q in questions],
        "resumable": progress is not None,
        "progress": progress_to_dict(progress),
    }


@router.post("/{quiz_id}/known/{number}")
def toggle_known(quiz_id: str, number: int, service: SessionService = Depends(get_session_service)):
    """Flag or unflag a question as already known."""
    _require_quiz(service, quiz_id)
    record = service.toggle_known(quiz_id, number)
    return {
        "quiz_id": quiz_id,
        "known_questions": record.known_questions,
        "is_known": number in record.known_questions,
    }


@router.post("/{quiz_id}/finish")
def finish_quiz(
    quiz_id: str,
    request: WorkingSetRequest,
    service: SessionService = Depends(get_session_service),
):
    """Grade the working set as presented and store the result."""
    _require_quiz(service, quiz_id)
    working = [q.to_question() for q in request.questions]
    try:
        result, record = service.finish(quiz_id, working, request.user_answers)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        **result.to_dict(),
        "wrong_questions": [q.to_dict() for q in result.wrong_questions],
        "progress": record.to_item(),
    }


@router.post("/{quiz_id}/retry")
def retry_quiz(quiz_id: str, service: SessionService = Depends(get_session_service)):
    """Discard progress so the quiz starts over."""
    _require_quiz(service, quiz_id)
    service.retry(quiz_id)
    return {"success": True, "quiz_id": quiz_id}


@router.post("/{quiz_id}/retry-wrong")
def retry_wrong(
    quiz_id: str,
    request: WorkingSetRequest,
    service: SessionService = Depends(get_session_service),
):
    """Working set of the wrongly answered questions. Progress is untouched."""
    _require_quiz(service, quiz_id)
    working = [q.to_question() for q in request.questions]
    try:
        wrong = service.retry_wrong(quiz_id, working, request.user_answers)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "quiz_id": quiz_id,
        "questions": [q.to_dict() for q in wrong],
        "total": len(wrong),
    }
