from models.actors import ActorRole
from schemas.notification import NotificationCreate, NotificationType
from utils.leave_utils import LeaveEvent


# event -> (type, [(audience, message), ...])
LEAVE_NOTIFICATIONS = {
    LeaveEvent.CREATE: (NotificationType.LEAVE_REQUEST, [
        (ActorRole.GUARDIAN, "New outing request from your ward is awaiting your approval"),
    ]),
    LeaveEvent.PARENT_APPROVE: (NotificationType.LEAVE_AWAITING_WARDEN, [
        (ActorRole.SUPERVISOR, "A parent-approved outing request is awaiting your decision"),
    ]),
    LeaveEvent.PARENT_REJECT: (NotificationType.LEAVE_REJECTED_BY_PARENT, [
        (ActorRole.RESIDENT, "Your outing request has been rejected by your parent"),
    ]),
    LeaveEvent.WARDEN_APPROVE: (NotificationType.LEAVE_APPROVED, [
        (ActorRole.RESIDENT, "Your outing request has been approved"),
        (ActorRole.GUARDIAN, "Your ward's outing request has been approved by the warden"),
    ]),
    LeaveEvent.WARDEN_REJECT: (NotificationType.LEAVE_REJECTED, [
        (ActorRole.RESIDENT, "Your outing request has been rejected"),
        (ActorRole.GUARDIAN, "Your ward's outing request has been rejected by the warden"),
    ]),
    LeaveEvent.CANCEL: (NotificationType.LEAVE_CANCELLED, [
        (ActorRole.GUARDIAN, "Your ward has cancelled an outing request"),
    ]),
}


def build_leave_notifications(event, leave) -> list:
    notification_type, recipients = LEAVE_NOTIFICATIONS[event]
    return [
        NotificationCreate(
            institution_id=leave.institution_id,
            audience=audience,
            student_id=leave.student_id,
            type=notification_type,
            message=message,
            related_id=leave.id,
        )
        for audience, message in recipients
    ]


class LeaveNotificationListener:
    """Writes in-app notification records for every committed transition."""

    def __init__(self, collection):
        self.collection = collection

    async def __call__(self, transition_event):
        notifications = build_leave_notifications(transition_event.event, transition_event.leave)
        if notifications:
            await self.collection.insert_many([n.model_dump() for n in notifications])
