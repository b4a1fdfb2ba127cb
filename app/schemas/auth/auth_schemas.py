from pydantic import BaseModel


class Actor(BaseModel):
    """The authenticated caller, as asserted by the access token."""

    id: int
    username: str
    role: str

    model_config = {"frozen": True}
