import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class AppointmentEmailData:
    appointment_id: int
    owner_name: str
    owner_email: str
    guest_name: str
    guest_email: str
    start_time: datetime
    end_time: datetime
    reason: str | None = None
    guests: list[str] = field(default_factory=list)
    old_start_time: datetime | None = None
    old_end_time: datetime | None = None

    @property
    def recipients(self) -> list[str]:
        """Primary guest first, then additional guests; blanks and repeats dropped."""
        seen: list[str] = []
        for address in [self.guest_email, *self.guests]:
            address = (address or "").strip()
            if address and address.lower() not in (s.lower() for s in seen):
                seen.append(address)
        return seen


def _send_email_sync(to_email: str, subject: str, html_body: str, reply_to: str | None = None) -> bool:
    """Send email via SMTP (blocking). Use from background task. Never raises."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send to %s", to_email)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
        return True
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        return False


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def format_date_time(dt: datetime) -> str:
    return dt.strftime("%A, %B %d, %Y at %I:%M %p")


def format_time(dt: datetime) -> str:
    return dt.strftime("%I:%M %p")


def _slot_display(start: datetime, end: datetime) -> str:
    return f"{format_date_time(start)} – {format_time(end)} (UTC)"


def _row(label: str, value: str) -> str:
    return f"""
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;letter-spacing:0.5px;color:#6b7280;">{label}</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{value}</p>"""


def build_appointment_email_html(heading: str, intro: str, data: AppointmentEmailData) -> str:
    """HTML body shared by the booked / cancelled / rescheduled emails."""
    rows = [_row("With", _html_escape(f"{data.owner_name} ({data.owner_email})"))]
    if data.old_start_time and data.old_end_time:
        rows.append(_row("Previous time", _slot_display(data.old_start_time, data.old_end_time)))
        rows.append(_row("New time", _slot_display(data.start_time, data.end_time)))
    else:
        rows.append(_row("Time (30-minute session)", _slot_display(data.start_time, data.end_time)))
    attendees = data.recipients
    if len(attendees) > 1:
        rows.append(_row("Guests", _html_escape(", ".join(attendees))))
    if data.reason:
        rows.append(_row("Reason", _html_escape(data.reason)))
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{heading}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{heading}</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hi {_html_escape(data.guest_name or 'there')}, {intro}</p>
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:8px 24px 20px 24px;">{''.join(rows)}
                  </td>
                </tr>
              </table>
              <p style="margin:0;font-size:12px;color:#9ca3af;">Appointment #{data.appointment_id} · {settings.site_name}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _send_to_all(subject: str, html: str, data: AppointmentEmailData) -> dict[str, bool]:
    results = {to: _send_email_sync(to, subject, html, reply_to=data.owner_email) for to in data.recipients}
    failed = [to for to, ok in results.items() if not ok]
    if failed and settings.email_enabled:
        logger.warning("Appointment %s: email not delivered to %s", data.appointment_id, ", ".join(failed))
    return results


def send_appointment_booked_email(data: AppointmentEmailData) -> dict[str, bool]:
    """Compose and send booking confirmation to every guest (call from background task)."""
    html = build_appointment_email_html(
        "Appointment Confirmed", f"your appointment with {_html_escape(data.owner_name)} is booked.", data
    )
    return _send_to_all(f"Appointment Confirmed with {data.owner_name}", html, data)


def send_appointment_cancelled_email(data: AppointmentEmailData) -> dict[str, bool]:
    html = build_appointment_email_html(
        "Appointment Cancelled", f"your appointment with {_html_escape(data.owner_name)} has been cancelled.", data
    )
    return _send_to_all(f"Appointment Cancelled with {data.owner_name}", html, data)


def send_appointment_rescheduled_email(data: AppointmentEmailData) -> dict[str, bool]:
    html = build_appointment_email_html(
        "Appointment Rescheduled", f"your appointment with {_html_escape(data.owner_name)} has moved.", data
    )
    return _send_to_all(f"Appointment Rescheduled with {data.owner_name}", html, data)
