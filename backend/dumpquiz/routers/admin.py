"""Read-only admin statistics across all users."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..config import QUIZZES_TABLE, PROGRESS_TABLE
from ..database import get_db
from ..models import User
from ..services.document_store import DocumentStore, has_attribute

router = APIRouter(prefix="/api/admin", tags=["admin"])

RECENT_PROGRESS_LIMIT = 20


@router.get("/users")
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """List registered users."""
    users = db.query(User).order_by(desc(User.created_at)).all()
    return {
        "users": [
            {
                **u.to_dict(),
                "enabled": bool(u.enabled),
                "updated_at": u.updated_at.isoformat() if u.updated_at else None,
            }
            for u in users
        ]
    }


@router.get("/users/{user_id}")
def get_user_stats(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Quizzes and progress records of one user."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    quizzes = DocumentStore(db, QUIZZES_TABLE).query(user.identity_id, has_attribute("name"))
    progress = DocumentStore(db, PROGRESS_TABLE).query(user.identity_id)

    return {
        "user": user.to_dict(),
        "quizzes": quizzes,
        "progress": progress,
    }


@router.get("/stats")
def get_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Totals over every user, quiz and progress record."""
    total_users = db.query(User).count()
    quizzes = DocumentStore(db, QUIZZES_TABLE).scan(has_attribute("name"))
    progress = DocumentStore(db, PROGRESS_TABLE).scan()

    completed = [p for p in progress if p.get("completedAt")]
    scores = [p["score"] for p in progress if p.get("score") is not None]
    avg_score = sum(scores) / len(scores) if scores else 0

    recent = sorted(
        progress,
        key=lambda p: p.get("completedAt") or p.get("startedAt") or 0,
        reverse=True,
    )

    return {
        "total_users": total_users,
        "total_quizzes": len(quizzes),
        "completed_sessions": len(completed),
        "average_score": round(avg_score),
        "quizzes": [
            {k: q.get(k) for k in ("owner", "quizId", "name", "questionCount", "createdAt")}
            for q in quizzes
        ],
        "recent_progress": [
            {k: p.get(k) for k in ("owner", "quizId", "score", "completedAt")}
            for p in recent[:RECENT_PROGRESS_LIMIT]
        ],
    }
