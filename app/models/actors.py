from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActorRole(str, Enum):
    RESIDENT = "resident"
    GUARDIAN = "guardian"
    SUPERVISOR = "supervisor"

    @classmethod
    def _missing_(cls, value):
        # role names issued by the hostel app's auth service
        aliases = {
            "student": cls.RESIDENT,
            "parent": cls.GUARDIAN,
            "warden": cls.SUPERVISOR,
        }
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


class Principal(BaseModel):
    """The authenticated caller, trusted as handed over by the auth layer."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: ActorRole
    institution_id: str


class ResidentProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    institution_id: str
    name: Optional[str] = None
    roll_number: Optional[str] = None
    room: Optional[str] = None


class GuardianProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    institution_id: str
    student_id: str
    relationship: str = "Guardian"
