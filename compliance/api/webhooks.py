"""
Delivery status callbacks from the email and SMS providers.

Resend posts JSON events and Twilio posts form-encoded status callbacks.
Both are matched to alerts by the provider message id stored when the
alert was sent. The callback URL carries ``?token=`` which must equal
``DELIVERY_WEBHOOK_TOKEN``.
"""
import hmac
import logging
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Form, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.services import alert_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

RESEND_DELIVERED = {"email.delivered"}
RESEND_FAILED = {"email.bounced", "email.complained"}
TWILIO_DELIVERED = {"delivered"}
TWILIO_FAILED = {"failed", "undelivered"}

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def verify_webhook_token(token: Optional[str] = Query(default=None)) -> None:
    expected = os.getenv("DELIVERY_WEBHOOK_TOKEN", "")
    if not expected or not token or not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook token")


@router.post("/resend", dependencies=[Depends(verify_webhook_token)])
def resend_events(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    event_type = payload.get("type")
    message_id = (payload.get("data") or {}).get("email_id")
    if not message_id:
        return {"received": True}

    if event_type in RESEND_DELIVERED:
        alert_service.record_delivery_status(db, message_id, delivered=True)
    elif event_type in RESEND_FAILED:
        alert_service.record_delivery_status(db, message_id, delivered=False, error=f"Resend reported {event_type}")
    else:
        logger.debug("Unhandled Resend event %s for %s", event_type, message_id)
    return {"received": True}


@router.post("/twilio", dependencies=[Depends(verify_webhook_token)])
def twilio_status(
    MessageSid: str = Form(...),
    MessageStatus: Optional[str] = Form(default=None),
    ErrorCode: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
):
    if MessageStatus in TWILIO_DELIVERED:
        alert_service.record_delivery_status(db, MessageSid, delivered=True)
    elif MessageStatus in TWILIO_FAILED:
        error = f"Twilio reported {MessageStatus}" + (f" (error {ErrorCode})" if ErrorCode else "")
        alert_service.record_delivery_status(db, MessageSid, delivered=False, error=error)
    return Response(content=EMPTY_TWIML, media_type="text/xml")
