"""
Wire models for the remote secret-room services.

Field names mirror the JSON the services speak (camelCase), the same way the public
snapshot models do, so payloads can be validated with `model_validate` and echoed back
with `model_dump` without alias plumbing.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class Policy(str, Enum):
    ONCE = "ONCE"
    LIMITED = "LIMITED"
    UNLIMITED = "UNLIMITED"


class ErrorBody(BaseModel):
    code: str
    message: str = ""
    details: dict[str, Any] | None = None


class ErrorResp(BaseModel):
    error: ErrorBody


class User(BaseModel):
    id: int
    username: str
    createdAt: str | None = None


class SessionResp(BaseModel):
    authenticated: bool = False
    user: User | None = None
    csrfToken: str | None = None


class SolveMeta(BaseModel):
    id: int
    title: str = ""
    hint: str = ""
    policy: Policy
    remaining: int | None = None
    limit: int | None = None
    expiresAt: datetime | None = None
    locked: bool = False
    retryAfterSec: int | None = None


class NonceResp(BaseModel):
    nonce: str
    expiresIn: int = 0


class SolveReq(BaseModel):
    roomId: int
    answer: str
    nonce: str


class SolvedText(BaseModel):
    type: Literal["TEXT"] = "TEXT"
    text: str


class SolvedImage(BaseModel):
    type: Literal["IMAGE"] = "IMAGE"
    signedUrl: str
    alt: str | None = None


SolvedContent = Annotated[Union[SolvedText, SolvedImage], Field(discriminator="type")]


class PolicyState(BaseModel):
    policy: Policy
    remaining: int | None = None
    limit: int | None = None
    expiresAt: datetime | None = None


class SolveResp(BaseModel):
    ok: bool
    content: SolvedContent
    policyState: PolicyState
