from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Principal, get_current_user, require_admin
from ..models import User
from ..schemas import (
    AnnouncementCreateRequest,
    AnnouncementOut,
    EventCreateRequest,
    EventOut,
    MessageCreateRequest,
    MessageOut,
    SmsSendRequest,
)
from ..services.communication import (
    create_announcement,
    create_event,
    create_message,
    list_announcements,
    list_events,
    list_messages,
    send_direct_sms,
)

router = APIRouter(prefix="/api", tags=["Communication"])


@router.get("/announcements", response_model=list[AnnouncementOut])
def announcements_index(db: Session = Depends(get_db_session), _: User = Depends(get_current_user)):
    return list_announcements(db)


@router.post("/announcements", response_model=AnnouncementOut, status_code=status.HTTP_201_CREATED)
def announcements_create(
    payload: AnnouncementCreateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return create_announcement(db, title=payload.title, body=payload.body)


@router.get("/events", response_model=list[EventOut])
def events_index(
    start: date | None = Query(default=None, alias="from"),
    end: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return list_events(db, start=start, end=end)


@router.post("/events", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def events_create(
    payload: EventCreateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return create_event(
        db,
        title=payload.title,
        event_date=payload.date,
        description=payload.description,
        event_type=payload.type,
    )


@router.get("/messages", response_model=list[MessageOut])
def messages_index(
    email: str | None = Query(default=None),
    role: str | None = Query(default=None),
    class_name: str | None = Query(default=None, alias="class"),
    db: Session = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return list_messages(db, email=email, role=role, class_name=class_name)


@router.post("/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def messages_create(
    payload: MessageCreateRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return create_message(db, **payload.model_dump())


@router.post("/notifications/sms")
def notifications_sms(payload: SmsSendRequest, _: Principal = Depends(require_admin)):
    result = send_direct_sms(to=payload.to, message=payload.message)
    return {"ok": True, "provider": result.provider, "id": result.id}
