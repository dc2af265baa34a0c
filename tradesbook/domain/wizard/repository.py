"""Booking draft repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import BookingDraft


class DraftRepository:
    """Data access layer for persisted wizard drafts"""

    @staticmethod
    def get_by_public_id(db: Session, public_id: str) -> Optional[BookingDraft]:
        return db.query(BookingDraft).filter(BookingDraft.public_id == public_id).first()

    @staticmethod
    def create(db: Session, state: dict, user_id: Optional[int]) -> BookingDraft:
        draft = BookingDraft(state=state, user_id=user_id, status="active")
        db.add(draft)
        db.commit()
        db.refresh(draft)
        return draft

    @staticmethod
    def save_state(db: Session, draft: BookingDraft, state: dict) -> BookingDraft:
        # Reassign so SQLAlchemy sees the JSON column as changed
        draft.state = state
        db.commit()
        db.refresh(draft)
        return draft

    @staticmethod
    def mark_submitted(db: Session, draft: BookingDraft, booking_id: int) -> BookingDraft:
        draft.status = "submitted"
        draft.booking_id = booking_id
        db.commit()
        db.refresh(draft)
        return draft
