import hashlib
import hmac
import uuid
from dataclasses import dataclass

import requests

@dataclass
class RazorpayConfig:
    key_id: str             # public key, handed to the checkout widget
    key_secret: str         # signs checkout callbacks
    host: str = "api.razorpay.com"
    timeout: int = 25
    sandbox: bool = False   # no network; synthetic order ids

class RazorpayError(RuntimeError):
    pass

def payment_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Checkout signature: hex HMAC-SHA256 of "order_id|payment_id"."""
    msg = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()

class RazorpayClient:
    def __init__(self, cfg: RazorpayConfig):
        self.cfg = cfg

    @property
    def key_id(self) -> str:
        return self.cfg.key_id

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"https://{self.cfg.host}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                json=payload or {},
                auth=(self.cfg.key_id, self.cfg.key_secret),
                timeout=self.cfg.timeout,
            )
        except requests.RequestException as e:
            raise RazorpayError(f"Razorpay unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            raise RazorpayError(f"Razorpay {r.status_code}: {data}")
        return data

    def create_order(self, *, amount_minor: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
        """Open an order for ``amount_minor`` (paise for INR)."""
        if self.cfg.sandbox:
            return {"id": f"order_sandbox_{uuid.uuid4().hex[:14]}", "amount": amount_minor, "currency": currency, "receipt": receipt, "status": "created"}
        payload = {"amount": int(amount_minor), "currency": currency, "receipt": receipt[:40]}
        if notes:
            payload["notes"] = notes
        return self.request("POST", "/v1/orders", payload)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.cfg.key_secret or not signature:
            return False
        expected = payment_signature(self.cfg.key_secret, order_id or "", payment_id or "")
        return hmac.compare_digest(expected, signature)
