"""Actor model - the authenticated caller of an operation."""

from pydantic import BaseModel, ConfigDict

from claimgate.models.enums import ActorRole

SYSTEM_ACTOR_ID = "sys:claimgate"


class Actor(BaseModel):
    """Represents who is calling: a customer, a provider, an admin, or the system."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ActorRole

    @classmethod
    def customer(cls, actor_id: str) -> "Actor":
        return cls(id=actor_id, role=ActorRole.CUSTOMER)

    @classmethod
    def provider(cls, actor_id: str) -> "Actor":
        return cls(id=actor_id, role=ActorRole.PROVIDER)

    @classmethod
    def admin(cls, actor_id: str) -> "Actor":
        return cls(id=actor_id, role=ActorRole.ADMIN)

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=SYSTEM_ACTOR_ID, role=ActorRole.SYSTEM)
