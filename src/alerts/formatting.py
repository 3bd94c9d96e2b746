"""Channel-specific message formatting.

Pure builders for the Slack Block Kit payload, the multipart email body
and the Web Push payload. Differences between channels are cosmetic; all
of them carry the same message text.
"""

import html
import re
from datetime import datetime, timezone
from typing import Any

from src.alerts.schemas import NotificationMetadata

DEFAULT_TITLE = "Performance Alert"

PRIORITY_EMOJI = {
    "critical": ":rotating_light:",
    "high": ":warning:",
    "medium": ":bar_chart:",
    "low": ":information_source:",
}

PRIORITY_COLORS = {
    "critical": ("#dc3545", "#ffffff"),
    "high": ("#ffc107", "#000000"),
    "medium": ("#17a2b8", "#ffffff"),
    "low": ("#6c757d", "#ffffff"),
}

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def title_for(metadata: NotificationMetadata) -> str:
    return metadata.center_name or DEFAULT_TITLE


def build_slack_payload(message: str, metadata: NotificationMetadata) -> dict[str, Any]:
    """Build a Slack Block Kit payload: header, message, priority, actions."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": title_for(metadata), "emoji": True},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": message},
        },
    ]

    if metadata.priority:
        emoji = PRIORITY_EMOJI.get(metadata.priority, ":information_source:")
        blocks.append({
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"{emoji} *Priority:* {metadata.priority.upper()}",
                },
            ],
        })

    if metadata.action_items:
        items = "\n".join(f"• {item}" for item in metadata.action_items)
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Action Items:*\n{items}"},
        })

    if metadata.dashboard_url:
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View Dashboard"},
                    "url": metadata.dashboard_url,
                    "style": "primary",
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Acknowledge"},
                    "value": f"acknowledge:{metadata.alert_id or ''}",
                },
            ],
        })

    # ``text`` is the fallback shown in notifications
    return {"blocks": blocks, "text": message}


def email_subject(metadata: NotificationMetadata) -> str:
    subject = f"Alert: {metadata.center_name or 'Performance Update'}"
    if metadata.priority in ("critical", "high"):
        subject = f"[{metadata.priority.upper()}] {subject}"
    return subject


def build_email_html(
    message: str,
    metadata: NotificationMetadata,
    sent_at: datetime | None = None,
) -> str:
    """Render the HTML email with priority badge, action items and link."""
    sent_at = sent_at or datetime.now(timezone.utc)
    title = html.escape(title_for(metadata))
    body = html.escape(message).replace("\n", "<br>")

    badge = ""
    if metadata.priority:
        bg, fg = PRIORITY_COLORS.get(metadata.priority, PRIORITY_COLORS["low"])
        badge = (
            f'<div style="display:inline-block;padding:5px 15px;border-radius:20px;'
            f'font-size:12px;font-weight:bold;text-transform:uppercase;'
            f'background:{bg};color:{fg};">'
            f"{html.escape(metadata.priority)} Priority</div>"
        )

    actions = ""
    if metadata.action_items:
        items = "".join(f"<li>{html.escape(item)}</li>" for item in metadata.action_items)
        actions = (
            '<div style="background:#fff;padding:20px;border-radius:6px;margin:20px 0;">'
            f"<h3>Action Items:</h3><ul>{items}</ul></div>"
        )

    button = ""
    if metadata.dashboard_url:
        button = (
            '<div style="text-align:center;margin:20px 0;">'
            f'<a href="{html.escape(metadata.dashboard_url, quote=True)}" '
            'style="display:inline-block;padding:12px 24px;background:#667eea;'
            'color:#fff;text-decoration:none;border-radius:6px;">View Dashboard</a></div>'
        )

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto;padding:20px;">
  <div style="background:#667eea;color:#fff;padding:30px;border-radius:8px 8px 0 0;">
    <h1>{title}</h1>
    {badge}
  </div>
  <div style="background:#f8f9fa;padding:30px;border-radius:0 0 8px 8px;">
    <div style="background:#fff;padding:20px;border-radius:6px;margin:20px 0;border-left:4px solid #667eea;">
      <p>{body}</p>
    </div>
    {actions}
    {button}
  </div>
  <div style="text-align:center;margin-top:30px;color:#666;font-size:12px;">
    <p>This is an automated alert from the Sales Alert Portal.</p>
    <p>Sent at {sent_at.strftime("%Y-%m-%d %H:%M %Z")}</p>
  </div>
</body>
</html>
"""


def strip_html(content: str) -> str:
    """Plain-text fallback: drop tags and collapse whitespace."""
    return _WS_RE.sub(" ", _TAG_RE.sub("", content)).strip()


def build_push_payload(message: str, metadata: NotificationMetadata) -> dict[str, Any]:
    """Build the Web Push notification payload consumed by the service worker."""
    data: dict[str, Any] = {"url": metadata.dashboard_url or "/dashboard"}
    if metadata.alert_id:
        data["alert_id"] = metadata.alert_id
    if metadata.trigger_type:
        data["trigger_type"] = metadata.trigger_type

    return {
        "title": title_for(metadata),
        "body": message,
        "icon": "/icon-192.png",
        "badge": "/icon-192.png",
        "tag": f"sales-alert-{metadata.trigger_type or 'general'}",
        "priority": "high" if metadata.priority == "critical" else "normal",
        "data": data,
    }
