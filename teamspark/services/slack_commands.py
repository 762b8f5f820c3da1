"""
Slack ``/kudos @user category message`` slash command.

Replies are Slack response payloads: problems are answered with an
``ephemeral`` message visible only to the caller, success is posted
``in_channel``.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.orm import Session

from teamspark.core.exceptions import AppException
from teamspark.models.kudos import KudosCategory, SlackWorkspace
from teamspark.models.user import User
from teamspark.services.kudos_service import KudosService

logger = logging.getLogger(__name__)

# <@U123|name>, <@U123> or @U123
MENTION_RE = re.compile(r"^(?:<@(?P<escaped>[A-Za-z0-9]+)(?:\|[^>]*)?>|@(?P<plain>[A-Za-z0-9]+))$")

CATEGORY_CHOICES = ", ".join(c.value.lower() for c in KudosCategory)
USAGE = f"Usage: `/kudos @user category message`\nCategories: {CATEGORY_CHOICES}"


@dataclass
class KudosCommand:
    receiver_slack_id: str
    category: str
    message: str


def parse_kudos_command(text: str) -> Optional[KudosCommand]:
    """
    Split the command text into mention, category and free text.
    Returns None when the text does not have that shape.
    """
    parts = (text or "").split(None, 2)
    if len(parts) < 3:
        return None
    mention, category, message = parts
    match = MENTION_RE.match(mention)
    if not match:
        return None
    return KudosCommand(
        receiver_slack_id=match.group("escaped") or match.group("plain"),
        category=category,
        message=message.strip(),
    )


def resolve_category(raw: str) -> Optional[KudosCategory]:
    try:
        return KudosCategory(raw.upper())
    except ValueError:
        return None


def ephemeral(text: str) -> Dict:
    return {"response_type": "ephemeral", "text": text}


def handle_kudos_command(db: Session, form: Dict[str, str]) -> Dict:
    command = parse_kudos_command(form.get("text", ""))
    if command is None:
        return ephemeral(USAGE)

    workspace = db.query(SlackWorkspace).filter(SlackWorkspace.team_id == form.get("team_id")).first()
    if workspace is None:
        return ephemeral("This workspace is not connected to TeamSpark. Please contact your administrator.")

    org_id = workspace.organization_id
    sender = db.query(User).filter(
        User.slack_user_id == form.get("user_id"),
        User.organization_id == org_id,
        User.is_active.is_(True),
    ).first()
    if sender is None:
        return ephemeral("Your account was not found. Connect Slack in TeamSpark first.")

    receiver = db.query(User).filter(
        User.slack_user_id == command.receiver_slack_id,
        User.organization_id == org_id,
        User.is_active.is_(True),
    ).first()
    if receiver is None:
        return ephemeral("The mentioned user was not found.")

    if sender.id == receiver.id:
        return ephemeral("You cannot send kudos to yourself.")

    category = resolve_category(command.category)
    if category is None:
        return ephemeral(f"Invalid category. Choose one of: {CATEGORY_CHOICES}")

    try:
        KudosService(db, org_id, actor=sender).send(receiver.id, category, command.message, is_public=True)
    except AppException as e:
        logger.info(f"Slack kudos rejected: {e.message}")
        return ephemeral(e.message)

    return {
        "response_type": "in_channel",
        "text": f":tada: <@{form.get('user_id')}> sent kudos to <@{command.receiver_slack_id}>!",
        "attachments": [
            {
                "color": "good",
                "fields": [
                    {"title": "Category", "value": category.label, "short": True},
                    {"title": "Message", "value": command.message, "short": False},
                ],
            }
        ],
    }
