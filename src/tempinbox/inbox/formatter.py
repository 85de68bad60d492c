"""Presentation helpers for the inbox.

Countdown badge, progress tier, relative message times and list labels.
None of these feed back into the session state machine.
"""

from __future__ import annotations

from datetime import UTC, datetime

from tempinbox import conventions

from .models import CatalogStatus, InboxSnapshot, Message, SessionStatus, Tier


def format_countdown(seconds: int) -> str:
    """Format seconds as MM:SS (minutes are not wrapped at 60)."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def progress_percent(remaining_seconds: int, total_seconds: int) -> float:
    """remaining / total * 100, clamped to [0, 100]."""
    if total_seconds <= 0:
        return 0.0
    return max(0.0, min(100.0, remaining_seconds / total_seconds * 100))


def severity_tier(remaining_seconds: int) -> Tier:
    """Bucket remaining time: > 30 min high, > 10 min medium, else low."""
    if remaining_seconds > conventions.TIER_HIGH_ABOVE_SECONDS:
        return Tier.HIGH
    if remaining_seconds > conventions.TIER_MEDIUM_ABOVE_SECONDS:
        return Tier.MEDIUM
    return Tier.LOW


def _distance(minutes: int, seconds: float) -> str:
    if seconds < 30:
        return "less than a minute"
    if minutes < 2:
        return "1 minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if minutes < 90:
        return "about 1 hour"
    if minutes < 24 * 60:
        return f"about {round(minutes / 60)} hours"
    if minutes < 42 * 60:
        return "1 day"
    if minutes < 30 * 24 * 60:
        return f"{round(minutes / (24 * 60))} days"
    months = round(minutes / (30 * 24 * 60))
    if months < 12:
        return "about 1 month" if months == 1 else f"{months} months"
    years = round(months / 12)
    return "about 1 year" if years == 1 else f"about {years} years"


def format_relative(created_at: datetime | None, now: datetime | None = None) -> str:
    """Human distance from now, e.g. '5 minutes ago' or 'in 2 days'."""
    if created_at is None:
        return "Unknown time"
    if now is None:
        now = datetime.now(UTC)
    seconds = (now - created_at).total_seconds()
    future = seconds < 0
    seconds = abs(seconds)
    text = _distance(round(seconds / 60), seconds)
    return f"in {text}" if future else f"{text} ago"


def sender_label(message: Message) -> str:
    return message.from_addr.name or message.from_addr.address or "Unknown sender"


def subject_label(message: Message) -> str:
    return message.subject or "(No subject)"


def header_title(snapshot: InboxSnapshot) -> str:
    """Title for the inbox panel given the current state."""
    if snapshot.catalog_status in (CatalogStatus.IDLE, CatalogStatus.LOADING):
        return "Loading Domains..."
    if snapshot.catalog_status == CatalogStatus.ERROR:
        return "Domain Error"
    if snapshot.account is None:
        if snapshot.status == SessionStatus.PROVISIONING:
            return "Creating Inbox..."
        if snapshot.eligible_domain_count:
            return "Initializing Inbox"
        return "No Domains Available"
    return "Your Inbox"


def countdown_badge(snapshot: InboxSnapshot) -> str:
    """'MM:SS left', the expired marker, or '' when nothing is shown."""
    if snapshot.countdown.has_expired_locally:
        return "Inbox deleted (timer expired)"
    if (
        snapshot.status == SessionStatus.ACTIVE
        and snapshot.countdown.remaining_seconds > 0
    ):
        return f"{format_countdown(snapshot.countdown.remaining_seconds)} left"
    return ""


def message_list_title(messages: list[Message]) -> str:
    if messages:
        return f"Messages ({len(messages)})"
    return "Messages"
