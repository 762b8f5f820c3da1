from typing import List

from sqlalchemy import or_

from teamspark.core.config import settings
from teamspark.core.exceptions import InvalidInputError, NotFoundError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.kudos import Kudos, KudosCategory
from teamspark.models.user import User
from teamspark.services.base import BaseService
from teamspark.services.notification import NotificationService


class KudosService(BaseService):
    def send(self, receiver_id: int, category: KudosCategory, message: str, is_public: bool = True) -> Kudos:
        """Create kudos from the acting user. The receiver is notified in the same transaction."""
        receiver = self.scoped(User).filter(User.id == receiver_id, User.is_active.is_(True)).first()
        if receiver is None:
            raise NotFoundError("User", receiver_id)
        if receiver.id == self.actor.id:
            raise InvalidInputError("You cannot send kudos to yourself", field="receiver_id")

        text = sanitize_input(message or "")
        if not text:
            raise InvalidInputError("Message must not be empty", field="message")
        if len(text) > settings.kudos_max_message_length:
            raise InvalidInputError(
                f"Message must be at most {settings.kudos_max_message_length} characters", field="message"
            )

        kudos = Kudos(
            organization_id=self.org_id,
            sender_id=self.actor.id,
            receiver_id=receiver.id,
            category=category,
            message=text,
            is_public=is_public,
        )
        self.db.add(kudos)
        NotificationService.create_notification(
            self.db,
            user_id=receiver.id,
            title="You received kudos!",
            message=f"{self.actor.name or self.actor.email} recognized you for {category.label}",
            type="kudos",
            link="/kudos",
            commit=False,
        )
        self.db.commit()
        self.db.refresh(kudos)
        self.log_info(f"Kudos {kudos.id} sent to user {receiver.id}", kudos_id=kudos.id)

        self.audit.log_action(
            AuditAction.CREATE, "kudos", kudos.id,
            new_values={"receiver_id": receiver.id, "category": category, "is_public": is_public},
        )
        return kudos

    def feed(self, limit: int = 50) -> List[Kudos]:
        """Public kudos of the organization plus any the actor sent or received, newest first."""
        return (
            self.scoped(Kudos)
            .filter(or_(
                Kudos.is_public.is_(True),
                Kudos.sender_id == self.actor.id,
                Kudos.receiver_id == self.actor.id,
            ))
            .order_by(Kudos.created_at.desc(), Kudos.id.desc())
            .limit(limit)
            .all()
        )
