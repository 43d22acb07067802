from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from smsverify.api.auth import require_api_key
from smsverify.api.schemas import (
    AuthenticateClientRequest,
    ChallengeRequest,
    ChallengeResponse,
    ClientResponse,
    CreateClientRequest,
    DeliveryReport,
    DeliveryReportResponse,
    RecoveryChallengeRequest,
    VerifyRequest,
)
from smsverify.core.facade import VerificationFacade, get_facade

# Facade calls block on Redis (and on the gateway in sync mode): run them off the event loop.
router = APIRouter(prefix="/service", dependencies=[Depends(require_api_key)])


@router.post("/client/create/", response_model=ClientResponse)
async def create_client(body: CreateClientRequest, facade: VerificationFacade = Depends(get_facade)):
    client = await run_in_threadpool(facade.create_client, body.username, body.password)
    return ClientResponse(client=client)


@router.get("/client/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, facade: VerificationFacade = Depends(get_facade)):
    client = await run_in_threadpool(facade.get_client, client_id)
    return ClientResponse(client=client)


@router.post("/client/authenticate/", response_model=ClientResponse)
async def authenticate_client(body: AuthenticateClientRequest, facade: VerificationFacade = Depends(get_facade)):
    client = await run_in_threadpool(facade.authenticate_client, body.username, body.password)
    return ClientResponse(client=client)


@router.post("/verification/request/", response_model=ChallengeResponse)
async def request_challenge(body: ChallengeRequest, facade: VerificationFacade = Depends(get_facade)):
    out = await run_in_threadpool(facade.request_challenge, body.clientId, body.mobileNumber, body.password)
    return ChallengeResponse(verification=out)


@router.post("/verification/request/recovery/", response_model=ChallengeResponse)
async def request_recovery_challenge(body: RecoveryChallengeRequest, facade: VerificationFacade = Depends(get_facade)):
    out = await run_in_threadpool(facade.request_recovery_challenge, body.mobileNumber, body.password)
    return ChallengeResponse(verification=out)


@router.post("/verification/verify/", response_model=ClientResponse)
async def verify_challenge(body: VerifyRequest, facade: VerificationFacade = Depends(get_facade)):
    client = await run_in_threadpool(
        facade.verify_challenge,
        body.mobileNumber,
        body.password,
        body.smsChallenge,
        body.clientChallenge,
    )
    return ClientResponse(client=client)


@router.post("/verification/delivery-report/", response_model=DeliveryReportResponse)
async def delivery_report(body: DeliveryReport, facade: VerificationFacade = Depends(get_facade)):
    out = await run_in_threadpool(facade.report_delivery_status, body.smsHandle, body.delivered)
    return DeliveryReportResponse(verification=out)
