import html
import textwrap
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.pre_approval import PreApproval
from app.services.auth import parse_timestamp

QR_CONTENT_ID = "qrcode"

ARRIVAL_INSTRUCTIONS = [
    "Please arrive within your scheduled time window",
    "Bring a valid photo ID for verification",
    "Present this QR code at the security gate",
    "The QR code expires after your visit date",
    "Contact your host if you need to reschedule",
]


class EmailAttachment(BaseModel):
    filename: str
    content: bytes
    content_type: str = "image/png"
    content_id: Optional[str] = None  # для inline-картинок (cid:...)


class EmailMessage(BaseModel):
    to: str
    subject: str
    html: str
    text: str
    attachments: List[EmailAttachment] = Field(default_factory=list)


def format_valid_until(valid_until: str) -> str:
    return parse_timestamp(valid_until).strftime("%Y-%m-%d %H:%M %Z").strip()


def render_pass_email(entry: PreApproval, company_name: str, qr_png: bytes) -> EmailMessage:
    """
    Письмо с QR-пропуском. Картинка уходит вложением с content_id и
    подставляется в HTML через cid:, чтобы письмо открывалось без загрузки
    внешних ресурсов.
    """
    visitor = html.escape(entry.visitor_name)
    host = html.escape(entry.host_employee_name)
    purpose = html.escape(entry.purpose)
    company = html.escape(company_name)
    time_window = f"{entry.start_time} - {entry.end_time}"
    valid_until = format_valid_until(entry.valid_until)

    details = [
        ("Visitor Name", visitor),
        ("Host Employee", host),
        ("Purpose", purpose),
        ("Date", entry.scheduled_date),
        ("Time Window", time_window),
        ("Valid Until", valid_until),
    ]
    detail_rows = "\n".join(
        f'<tr><td style="padding:8px 0;font-weight:bold;color:#555;">{label}:</td>'
        f'<td style="padding:8px 0;color:#333;">{value}</td></tr>'
        for label, value in details
    )
    instructions = "\n".join(f"<li>{item}</li>" for item in ARRIVAL_INSTRUCTIONS)

    subject = f"Your QR Pass for Visiting {company_name}"

    body = textwrap.dedent(f"""\
        <!DOCTYPE html>
        <html>
        <head>
          <meta charset="utf-8">
          <title>{html.escape(subject)}</title>
        </head>
        <body style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto;padding:20px;">
          <div style="background:#667eea;color:#fff;padding:30px;text-align:center;border-radius:10px 10px 0 0;">
            <h1 style="margin:0;">Your Visit QR Pass</h1>
            <p style="margin:8px 0 0;">Welcome to {company}</p>
          </div>
          <div style="background:#f8f9fa;padding:30px;border-radius:0 0 10px 10px;">
            <p>Hello <strong>{visitor}</strong>,</p>
            <p>Your visit to <strong>{company}</strong> has been pre-approved!
            Please present the QR code below at the entrance on the day of your visit.</p>
            <div style="text-align:center;margin:30px 0;padding:20px;background:#fff;border-radius:10px;">
              <h3>Your Entry QR Code</h3>
              <img src="cid:{QR_CONTENT_ID}" alt="QR Code for Entry" style="max-width:250px;height:auto;" />
              <p><small>Scan this code at the security gate</small></p>
            </div>
            <h3>Visit Details</h3>
            <table style="width:100%;background:#fff;padding:20px;border-radius:10px;">
            {detail_rows}
            </table>
            <div style="background:#fff3cd;border:1px solid #ffeaa7;padding:15px;border-radius:5px;margin:20px 0;">
              <h4 style="margin-top:0;">Important Instructions:</h4>
              <ul>
              {instructions}
              </ul>
            </div>
            <p style="text-align:center;color:#666;font-size:14px;">
              This is an automated message from the {company} Visitor Management System.<br/>
              If you have any questions, please contact your host: <strong>{host}</strong>
            </p>
          </div>
        </body>
        </html>
    """)

    text_lines = [
        f"Hello {entry.visitor_name},",
        "",
        f"Your visit to {company_name} has been pre-approved.",
        "Present the attached QR code at the security gate.",
        "",
        f"Visitor Name: {entry.visitor_name}",
        f"Host Employee: {entry.host_employee_name}",
        f"Purpose: {entry.purpose}",
        f"Date: {entry.scheduled_date}",
        f"Time Window: {time_window}",
        f"Valid Until: {valid_until}",
        "",
        "Important Instructions:",
    ]
    text_lines.extend(f"- {item}" for item in ARRIVAL_INSTRUCTIONS)

    return EmailMessage(
        to=entry.visitor_email,
        subject=subject,
        html=body,
        text="\n".join(text_lines),
        attachments=[
            EmailAttachment(
                filename="visitor-qr-code.png",
                content=qr_png,
                content_type="image/png",
                content_id=QR_CONTENT_ID,
            )
        ],
    )
