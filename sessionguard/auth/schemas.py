from pydantic import BaseModel


class RevokeAllResponse(BaseModel):
    user_id: str
    revoked_count: int


class HealthResponse(BaseModel):
    status: str
    redis: str


class CurrentToken(BaseModel):
    """A bearer token that passed signature and revocation checks."""

    raw: str
    claims: dict

    @property
    def subject(self) -> str:
        return str(self.claims["sub"])

    @property
    def role(self) -> str | None:
        return self.claims.get("role")
