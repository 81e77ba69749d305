from pydantic import BaseModel


class Token(BaseModel):
    """
    Access token returned by the login endpoint.
    """
    access_token: str
    token_type: str


class TokenPayload(BaseModel):
    """
    Payload of the JWT; ``sub`` is the user's email.
    """
    sub: str = None
