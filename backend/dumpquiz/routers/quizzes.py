"""API routes for importing and managing quizzes."""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_auth
from ..database import get_db
from ..models import User
from ..services.archive import BlobStore, archive_source_pdf
from ..services.parser import PDFParser
from ..services.quiz_store import QuizStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])

MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class QuizSummary(BaseModel):
    quiz_id: str
    name: str
    question_count: int
    chunk_count: int
    created_at: int
    updated_at: int
    current_index: Optional[int] = None
    completed_at: Optional[int] = None
    score: Optional[int] = None


def get_quiz_store(db: Session = Depends(get_db)) -> QuizStore:
    return QuizStore.from_session(db)


def get_blob_store() -> BlobStore:
    return BlobStore()


def quiz_name_from_filename(filename: str) -> str:
    name = Path(filename or "quiz").name
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name or "quiz"


@router.post("/upload")
def upload_quiz(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    store: QuizStore = Depends(get_quiz_store),
    blob_store: BlobStore = Depends(get_blob_store),
    user: User = Depends(require_auth),
):
    """Parse an exam-dump PDF and save it as a new quiz."""
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    parser = PDFParser()
    try:
        report = parser.parse_pdf(data, filename=file.filename or "")
    except Exception as e:
        logger.error(f"Failed to read PDF {file.filename}: {e}")
        raise HTTPException(status_code=422, detail="Could not read the PDF file")

    if not report.questions:
        raise HTTPException(
            status_code=422,
            detail="No questions found. Please check the PDF format.",
        )

    quiz_name = name or quiz_name_from_filename(file.filename)
    meta = store.save_quiz(user.identity_id, quiz_name, report.questions)

    # Runs after the response; failures are logged and ignored
    background_tasks.add_task(archive_source_pdf, blob_store, user.email, file.filename or "", data)

    return {
        "quiz": meta.to_item(),
        "report": report.to_dict(),
        "questions": [q.to_dict() for q in report.questions],
    }


@router.get("", response_model=List[QuizSummary])
def list_quizzes(
    store: QuizStore = Depends(get_quiz_store),
    user: User = Depends(require_auth),
):
    """List the user's quizzes with their progress summary."""
    progress = {p.quiz_id: p for p in store.list_progress(user.identity_id)}

    summaries = []
    for meta in store.list_quizzes(user.identity_id):
        record = progress.get(meta.quiz_id)
        summaries.append(QuizSummary(
            quiz_id=meta.quiz_id,
            name=meta.name,
            question_count=meta.question_count,
            chunk_count=meta.chunk_count,
            created_at=meta.created_at,
            updated_at=meta.updated_at,
            current_index=record.current_index if record else None,
            completed_at=record.completed_at if record else None,
            score=record.score if record else None,
        ))
    return summaries


@router.get("/{quiz_id}")
def get_quiz(
    quiz_id: str,
    store: QuizStore = Depends(get_quiz_store),
    user: User = Depends(require_auth),
):
    """Get quiz metadata and all of its questions."""
    result = store.get_quiz(user.identity_id, quiz_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Quiz not found")

    meta, questions = result
    return {
        "quiz": meta.to_item(),
        "questions": [q.to_dict() for q in questions],
    }


@router.delete("/{quiz_id}")
def delete_quiz(
    quiz_id: str,
    store: QuizStore = Depends(get_quiz_store),
    user: User = Depends(require_auth),
):
    """Delete a quiz, its chunks and its progress."""
    if store.get_meta(user.identity_id, quiz_id) is None:
        raise HTTPException(status_code=404, detail="Quiz not found")

    store.delete_quiz(user.identity_id, quiz_id)
    return {"success": True, "quiz_id": quiz_id}
