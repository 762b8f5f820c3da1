"""
Slack slash commands.
Requests are authenticated by their Slack signature, not by a bearer token.
"""
import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from teamspark.core.security import verify_slack_signature
from teamspark.database import get_db
from teamspark.services.slack_commands import handle_kudos_command

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])


@router.post("/commands/kudos")
async def kudos_command(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    if not verify_slack_signature(
        body,
        request.headers.get("x-slack-request-timestamp"),
        request.headers.get("x-slack-signature"),
    ):
        logger.warning("Rejected Slack command with invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Slack signature")

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body must be UTF-8")

    form = {key: values[0] for key, values in parse_qs(text, keep_blank_values=True).items()}
    return handle_kudos_command(db, form)
