from pydantic import BaseModel, Field

class UserInfo(BaseModel):
    """
    The part of the Auth0 /userinfo response this service relies on.
    """
    email: str = Field(min_length=1)

class SessionUser(BaseModel):
    """
    Identity stored in the session: only the local user id.
    """
    id: str
