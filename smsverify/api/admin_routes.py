from fastapi import APIRouter, Depends, HTTPException, Header
from smsverify.settings import settings
import smsverify.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Enabled without a configured key: reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    """Verification counters and SMS dispatch latency, backed by Redis."""
    return metrics.get_snapshot()
