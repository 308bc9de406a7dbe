from datetime import datetime
from pytz import UTC

from models.actors import ActorRole


async def log_supervisor_activity(collection, supervisor_id: str = None, institution_id: str = None,
                                  type: str = None, action: str = None, related_id: str = None):
    """
    Log a supervisor activity.

    Args:
        collection: The ``system_activity`` collection.
        supervisor_id (str): The supervisor's user id.
        institution_id (str): The institution the supervisor acted in.
        type (str): What was acted on, e.g. "leave".
        action (str): What was done, e.g. "approved".
        related_id (str): Id of the affected record.
    """
    log_entry = {
        "supervisor_id": supervisor_id,
        "institution_id": institution_id,
        "type": type,
        "action": action,
        "related_id": related_id,
        "status": "success",
        "timestamp": datetime.now(UTC)
    }
    await collection.insert_one(log_entry)


class SupervisorActivityListener:

    def __init__(self, collection):
        self.collection = collection

    async def __call__(self, transition_event):
        if transition_event.actor_role != ActorRole.SUPERVISOR:
            return
        await log_supervisor_activity(
            self.collection,
            supervisor_id=transition_event.actor_user_id,
            institution_id=transition_event.leave.institution_id,
            type="leave",
            action=transition_event.leave.status.value.lower(),
            related_id=transition_event.leave.id,
        )
