from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller as seen by the handlers"""

    id: str
    email: str
    is_active: bool = True
    is_admin: bool = False

    class Config:
        from_attributes = True
