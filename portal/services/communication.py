import logging
from datetime import date, timedelta

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import Announcement, Event, Message, SchoolSettings, User, UserRole
from ..sms import SmsResult, send_sms


logger = logging.getLogger(__name__)

BROADCAST_LIMIT = 200
EVENT_LOOKBACK_DAYS = 30
EVENT_LOOKAHEAD_DAYS = 180


def list_announcements(db: Session, *, limit: int = 10) -> list[Announcement]:
    return db.query(Announcement).order_by(Announcement.created_at.desc()).limit(limit).all()


def _sms_enabled(db: Session) -> bool:
    school_settings = db.query(SchoolSettings).first()
    return school_settings is None or school_settings.sms_notifications_enabled


def broadcast_to_parents(db: Session, text: str) -> int:
    """Best-effort SMS to every parent with a phone number; returns how many were delivered."""
    parents = (
        db.query(User)
        .filter(User.role == UserRole.PARENT, User.phone.isnot(None), User.phone != "")
        .limit(BROADCAST_LIMIT)
        .all()
    )
    delivered = sum(1 for parent in parents if send_sms(parent.phone, f"Announcement: {text}").ok)
    if parents:
        logger.info(f"Announcement SMS delivered to {delivered}/{len(parents)} parents")
    return delivered


def create_announcement(db: Session, *, title: str, body: str = "") -> Announcement:
    announcement = Announcement(title=title.strip(), body=body or "")
    db.add(announcement)
    db.commit()
    db.refresh(announcement)

    if _sms_enabled(db):
        text = f"{announcement.title}: {announcement.body}" if announcement.body else announcement.title
        broadcast_to_parents(db, text)
    return announcement


def list_events(db: Session, *, start: date | None = None, end: date | None = None) -> list[Event]:
    today = date.today()
    start = start or today - timedelta(days=EVENT_LOOKBACK_DAYS)
    end = end or today + timedelta(days=EVENT_LOOKAHEAD_DAYS)
    return (
        db.query(Event)
        .filter(Event.event_date >= start, Event.event_date <= end)
        .order_by(Event.event_date.asc())
        .all()
    )


def create_event(db: Session, *, title: str, event_date: date, description: str = "", event_type: str = "general") -> Event:
    event = Event(title=title.strip(), event_date=event_date, description=description or "", type=event_type or "general")
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def list_messages(
    db: Session,
    *,
    email: str | None = None,
    role: str | None = None,
    class_name: str | None = None,
    limit: int = 200,
) -> list[Message]:
    query = db.query(Message)
    if email:
        email = email.strip().lower()
        query = query.filter(or_(Message.sender_email == email, Message.recipient_email == email))
    if role:
        query = query.filter(Message.recipient_role == role)
    if class_name:
        query = query.filter(Message.class_name == class_name)
    return query.order_by(Message.created_at.desc()).limit(limit).all()


def create_message(
    db: Session,
    *,
    sender_email: str,
    content: str,
    recipient_role: str | None = None,
    recipient_email: str | None = None,
    class_name: str | None = None,
) -> Message:
    message = Message(
        sender_email=sender_email.strip().lower(),
        content=content,
        recipient_role=recipient_role or None,
        recipient_email=recipient_email.strip().lower() if recipient_email else None,
        class_name=class_name or None,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def send_direct_sms(*, to: str, message: str) -> SmsResult:
    result = send_sms(to, message)
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error or "SMS delivery failed")
    return result
