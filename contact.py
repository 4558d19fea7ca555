from html import escape
from typing import Optional

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, EmailStr, Field

import settings
from errors import Internal
from mailer import EmailDeliveryError, send_email

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])

BRAND = "RONY HAIR 237"
HEADER_STYLE = "background: linear-gradient(135deg, #02040e 0%, #84234c 100%); padding: 30px; text-align: center;"
CARD_STYLE = "background: white; padding: 25px; border-radius: 8px;"
LABEL_STYLE = "padding: 10px 0; font-weight: 600; color: #4a5568;"
VALUE_STYLE = "padding: 10px 0; color: #2d3748;"
TEXT_STYLE = "color: #4a5568; line-height: 1.6; margin: 0 0 15px;"


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


def _layout(tagline: str, body: str, footer: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="{HEADER_STYLE}">
    <h1 style="color: white; margin: 0;">{BRAND}</h1>
    <p style="color: rgba(255,255,255,0.9); margin: 10px 0 0;">{tagline}</p>
  </div>
  <div style="padding: 30px; background: #f7fafc;">
{body}
  </div>
  <div style="padding: 20px; text-align: center; color: #718096; font-size: 14px;">
    <p style="margin: 0;">{BRAND} - Beauty and wellness institute.</p>
{footer}
    <p style="margin: 5px 0 0;">Douala, Cameroon</p>
  </div>
</div>
"""


def _row(label: str, value: str) -> str:
    return f'<tr><td style="{LABEL_STYLE}">{label}:</td><td style="{VALUE_STYLE}">{escape(value)}</td></tr>'


def notification_html(form: ContactRequest) -> str:
    rows = [_row("Name", form.name), _row("Email", form.email)]
    if form.phone:
        rows.append(_row("Phone", form.phone))
    rows.append(_row("Subject", form.subject))
    body = f"""
    <div style="{CARD_STYLE} margin-bottom: 20px;">
      <h2 style="color: #2d3748; margin: 0 0 20px;">Contact details</h2>
      <table style="width: 100%; border-collapse: collapse;">{''.join(rows)}</table>
    </div>
    <div style="{CARD_STYLE}">
      <h3 style="color: #2d3748; margin: 0 0 15px;">Message:</h3>
      <p style="color: #4a5568; line-height: 1.6; margin: 0; white-space: pre-wrap;">{escape(form.message)}</p>
    </div>"""
    return _layout("New contact message", body, "")


def confirmation_html(form: ContactRequest) -> str:
    body = f"""
    <div style="{CARD_STYLE}">
      <h2 style="color: #2d3748; margin: 0 0 15px;">Hello {escape(form.name)},</h2>
      <p style="{TEXT_STYLE}">We have received your message about: <strong>{escape(form.subject)}</strong></p>
      <p style="{TEXT_STYLE}">Our team will review it and get back to you as soon as possible.</p>
      <p style="color: #4a5568; line-height: 1.6; margin: 0;">Thank you for your trust!</p>
    </div>"""
    footer = '    <p style="margin: 5px 0;">Phone: +237 696 409 306 / +237 674 153 984</p>'
    return _layout("Thank you for your message", body, footer)


@router.post("/send")
def send_contact(payload: ContactRequest):
    # Both emails must go out; either failure fails the whole request.
    try:
        send_email(settings.CONTACT_RECIPIENT, f"New message: {payload.subject}", notification_html(payload))
        send_email(payload.email, f"Confirmation of your message - {BRAND}", confirmation_html(payload))
    except EmailDeliveryError as exc:
        logger.error("contact_email_failed", error=str(exc))
        raise Internal("Error while sending the message")
    return {"success": True, "message": "Message sent successfully"}
