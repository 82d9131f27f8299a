"""
HTML email templates.

Each template is a function returning ``(subject, html)`` for the given
context.  Values are escaped with ``html.escape``; image URLs are only
emitted for ``http``/``https`` schemes.
"""

from html import escape
from typing import Iterable, Optional

BRAND = "RightBridge"

STATUS_MESSAGES = {
    "assigned": "A provider has been assigned to your booking",
    "in_progress": "Service is in progress",
    "completed": "Service has been completed",
    "cancelled": "Booking has been cancelled",
}


def status_sentence(status: str) -> str:
    """Human sentence for a booking status, with a generic fallback."""
    return STATUS_MESSAGES.get(status, f"Status updated to {status.replace('_', ' ')}")


def _layout(title: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; background: #f8fafc; color: #0f172a; margin: 0; padding: 24px;">
    <div style="max-width: 560px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 24px;">
      <h2 style="margin-top: 0;">{escape(title)}</h2>
      {body}
      <p style="font-size: 12px; color: #64748b; margin-top: 32px;">{footer}</p>
    </div>
  </body>
</html>
"""


def _image_list(images: Iterable[str]) -> str:
    safe = [url for url in images if url.startswith(("http://", "https://"))]
    if not safe:
        return ""
    items = "".join(
        f'<li><a href="{escape(url, quote=True)}">{escape(url)}</a></li>' for url in safe
    )
    return f"<p>Photos of the completed work:</p><ul>{items}</ul>"


def status_update_template(
    user_name: str,
    service_name: str,
    status: str,
    booking_id: int,
    date: str,
    provider_name: str,
    support_email: str,
    work_notes: Optional[str] = None,
    images: Optional[list[str]] = None,
) -> tuple[str, str]:
    """Customer-facing notice that a booking changed status."""
    subject = f"Booking {status.replace('_', ' ').capitalize()}: {service_name}"
    sections = [
        f"<p>Hi {escape(user_name)},</p>",
        f"<p><strong>{escape(status_sentence(status))}.</strong></p>",
        "<table style=\"border-collapse: collapse;\">",
        f"<tr><td style=\"padding: 4px 12px 4px 0;\">Service</td><td>{escape(service_name)}</td></tr>",
        f"<tr><td style=\"padding: 4px 12px 4px 0;\">Booking</td><td>#{booking_id}</td></tr>",
        f"<tr><td style=\"padding: 4px 12px 4px 0;\">Date</td><td>{escape(date)}</td></tr>",
        f"<tr><td style=\"padding: 4px 12px 4px 0;\">Provider</td><td>{escape(provider_name)}</td></tr>",
        f"<tr><td style=\"padding: 4px 12px 4px 0;\">Status</td><td>{escape(status.replace('_', ' '))}</td></tr>",
        "</table>",
    ]
    if work_notes:
        sections.append(f"<p>Notes from your provider: {escape(work_notes)}</p>")
    sections.append(_image_list(images or []))
    footer = f"Questions? Contact {escape(support_email)}."
    return subject, _layout(f"{BRAND} booking update", "\n".join(sections), footer)


def new_booking_template(
    provider_name: str,
    service_name: str,
    customer_name: str,
    booking_id: int,
    date: str,
    admin_email: str,
    notes: Optional[str] = None,
) -> tuple[str, str]:
    """Provider-facing notice of a booking they have been given."""
    subject = f"New Booking: {service_name}"
    body = "\n".join(
        [
            f"<p>Hi {escape(provider_name)},</p>",
            f"<p>You have a new booking for <strong>{escape(service_name)}</strong>.</p>",
            "<ul>",
            f"<li>Booking: #{booking_id}</li>",
            f"<li>Customer: {escape(customer_name)}</li>",
            f"<li>Date: {escape(date)}</li>",
            f"<li>Notes: {escape(notes or 'No additional notes')}</li>",
            "</ul>",
        ]
    )
    footer = f"Contact {escape(admin_email)} if you cannot take this job."
    return subject, _layout(f"{BRAND} new booking", body, footer)


TEMPLATES = {
    "statusUpdate": status_update_template,
    "newBooking": new_booking_template,
}
