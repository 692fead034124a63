"""
Notification rendering for contact submissions.

Produces the plain-text and HTML bodies of the email sent to the site owner.
Field values are HTML-escaped in the HTML body; the text body carries them
verbatim.
"""

from datetime import datetime
from html import escape

from src.shared.contact.schemas import NormalizedSubmission, RenderedNotification

DEFAULT_SUBJECT_PREFIX = "Portfolio Contact: "
FOOTER_SOURCE_LINE = "Sent from portfolio contact form"

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <style>
        body {{
            font-family: 'Arial', sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
        }}
        .header {{
            background: linear-gradient(135deg, #FF6B35, #004E89);
            color: white;
            padding: 30px;
            text-align: center;
            border-radius: 10px 10px 0 0;
        }}
        .header h1 {{ margin: 0; font-size: 24px; }}
        .content {{
            background: #f8f9fa;
            padding: 30px;
            border-radius: 0 0 10px 10px;
        }}
        .info-row {{
            margin-bottom: 20px;
            padding: 15px;
            background: white;
            border-radius: 8px;
            border-left: 4px solid #FF6B35;
        }}
        .label {{ font-weight: bold; color: #FF6B35; margin-bottom: 5px; }}
        .value {{ color: #2D3436; }}
        .message-box {{
            background: white;
            padding: 20px;
            border-radius: 8px;
            border-left: 4px solid #004E89;
            white-space: pre-wrap;
            word-wrap: break-word;
        }}
        .footer {{
            text-align: center;
            margin-top: 20px;
            padding-top: 20px;
            border-top: 2px solid #dfe6e9;
            color: #636E72;
            font-size: 14px;
        }}
    </style>
</head>
<body>
    <div class="header">
        <h1>💼 New Portfolio Contact Message</h1>
    </div>
    <div class="content">
        <div class="info-row">
            <div class="label">👤 Name:</div>
            <div class="value">{name}</div>
        </div>
        <div class="info-row">
            <div class="label">📧 Email:</div>
            <div class="value">{email}</div>
        </div>
        <div class="info-row">
            <div class="label">📝 Subject:</div>
            <div class="value">{subject}</div>
        </div>
        <div class="label" style="margin-top: 20px; margin-bottom: 10px;">💬 Message:</div>
        <div class="message-box">{message}</div>
        <div class="footer">
            <p>This message was sent from your portfolio contact form.</p>
            <p>Received on {received_on}</p>
        </div>
    </div>
</body>
</html>
"""

TEXT_TEMPLATE = """Name: {name}
Email: {email}
Subject: {subject}

Message:
{message}

---
{source_line}
{received_on}
"""


def format_timestamp(now: datetime) -> str:
    """Human-readable timestamp, e.g. 'March 05, 2026 at 02:30 PM UTC'."""
    formatted = now.strftime("%B %d, %Y at %I:%M %p")
    zone = now.strftime("%Z")
    return f"{formatted} {zone}" if zone else formatted


def render_text(submission: NormalizedSubmission, received_on: str) -> str:
    """Plain-text body with every field verbatim."""
    return TEXT_TEMPLATE.format(
        name=submission.name,
        email=submission.email,
        subject=submission.subject,
        message=submission.message,
        source_line=FOOTER_SOURCE_LINE,
        received_on=received_on,
    )


def render_html(submission: NormalizedSubmission, received_on: str) -> str:
    """HTML body with every field escaped against markup injection."""
    return HTML_TEMPLATE.format(
        name=escape(submission.name, quote=True),
        email=escape(submission.email, quote=True),
        subject=escape(submission.subject, quote=True),
        message=escape(submission.message, quote=True),
        received_on=escape(received_on, quote=True),
    )


def render(
    submission: NormalizedSubmission,
    now: datetime,
    subject_prefix: str = DEFAULT_SUBJECT_PREFIX
) -> RenderedNotification:
    """
    Render a validated submission into an outbound notification.

    Args:
        submission: Validated, normalized form fields
        now: Time the submission was accepted
        subject_prefix: Fixed prefix for the email subject line

    Returns:
        RenderedNotification with HTML and text bodies, subject line and
        a reply-to pointing back at the submitter
    """
    received_on = format_timestamp(now)
    return RenderedNotification(
        html_body=render_html(submission, received_on),
        text_body=render_text(submission, received_on),
        subject_line=f"{subject_prefix}{submission.subject}",
        reply_to=submission.email,
        sent_at=now,
    )
