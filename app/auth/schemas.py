from pydantic import BaseModel


class CurrentAdmin(BaseModel):
    """The authenticated super-administrator, resolved from the bearer token."""

    subject: str
    email: str
