from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.config import settings
from app.core.security import decode_token
from app.services.razorpay_client import RazorpayClient, RazorpayConfig

bearer = HTTPBearer(auto_error=False)

def get_current_user_id(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> str:
    """Authenticated principal id from a bearer token or the ``token`` cookie."""
    token = creds.credentials if creds else request.cookies.get("token")
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return str(user_id)

def get_gateway() -> RazorpayClient:
    if not settings.RAZORPAY_SANDBOX and not (settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET):
        raise HTTPException(status_code=500, detail="Razorpay is not configured (missing env vars)")
    return RazorpayClient(RazorpayConfig(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        host=settings.RAZORPAY_HOST,
        sandbox=settings.RAZORPAY_SANDBOX,
    ))
