from typing import Literal, Optional
from pydantic import BaseModel

Status = Literal["success", "error"]


class CreateClientRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class AuthenticateClientRequest(BaseModel):
    username: str = ""
    password: str = ""


class ChallengeRequest(BaseModel):
    clientId: str = ""
    mobileNumber: str = ""
    password: str = ""


class RecoveryChallengeRequest(BaseModel):
    mobileNumber: str = ""
    password: str = ""


class VerifyRequest(BaseModel):
    mobileNumber: str = ""
    password: str = ""
    smsChallenge: str = ""
    clientChallenge: str = ""


class DeliveryReport(BaseModel):
    smsHandle: str = ""
    delivered: bool = False


class ClientView(BaseModel):
    id: str
    verified: bool


class ClientResponse(BaseModel):
    status: Status = "success"
    client: ClientView


class ChallengeView(BaseModel):
    clientChallenge: str


class ChallengeResponse(BaseModel):
    status: Status = "success"
    verification: ChallengeView


class DeliveryStatusView(BaseModel):
    status: str


class DeliveryReportResponse(BaseModel):
    status: Status = "success"
    verification: DeliveryStatusView
