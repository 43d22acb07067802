from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from smsverify.api.routes import router
from smsverify.api.admin_routes import router as admin_router
from smsverify.core.errors import VerificationError
from smsverify.observability.logging import log
from smsverify.settings import settings

app = FastAPI(title="SMS Verification API")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "SMS verification API is running. See /health and /service/verification/request/."
    }


@app.get("/health")
def health():
    return {"status": "ok"}


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    log(event="request_rejected", path=request.url.path, error=exc.code, statusCode=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


print(
    f"[boot] STORE_BACKEND={settings.STORE_BACKEND} SMS_DISPATCH_MODE={settings.SMS_DISPATCH_MODE} "
    f"SMS_CHALLENGE_DIGITS={settings.SMS_CHALLENGE_DIGITS}"
)
