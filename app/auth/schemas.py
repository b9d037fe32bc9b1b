from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Identity and role resolved from the bearer token."""

    id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
