from __future__ import annotations

import base64
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any


class PaymentGatewayError(RuntimeError):
    pass


_DEFAULT_API_BASE = "https://api.stripe.com/v1"


@dataclass
class CheckoutSession:
    session_id: str
    payment_status: str
    customer_email: str | None
    amount_total: int | None
    payment_intent: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CheckoutSession":
        intent = payload.get("payment_intent")
        if isinstance(intent, dict):
            intent = intent.get("id")
        metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
        return cls(
            session_id=str(payload.get("id") or ""),
            payment_status=str(payload.get("payment_status") or ""),
            customer_email=payload.get("customer_email") or (payload.get("customer_details") or {}).get("email"),
            amount_total=payload.get("amount_total"),
            payment_intent=intent,
            metadata={str(key): str(value) for key, value in metadata.items()},
            url=payload.get("url"),
        )


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise PaymentGatewayError(f"Missing required environment variable: {name}")
    return value


def _flatten_form(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            pairs.extend(_flatten_form(value, name))
        elif isinstance(value, list):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(_flatten_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif value is not None:
            pairs.append((name, str(value)))
    return pairs


class StripeCheckoutGateway:
    """Thin Stripe Checkout client: create a session, read it back."""

    def __init__(self, secret_key: str, api_base: str = _DEFAULT_API_BASE, site_domain: str = "", timeout: int = 20):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.site_domain = site_domain.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "StripeCheckoutGateway":
        return cls(
            secret_key=_require_env("STRIPE_SECRET"),
            api_base=(os.environ.get("STRIPE_API_BASE") or _DEFAULT_API_BASE).strip(),
            site_domain=(os.environ.get("SITE_DOMAIN") or "").strip(),
        )

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self.secret_key}:".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    def _call(self, method: str, path: str, form: dict[str, Any] | None = None) -> dict[str, Any]:
        body = None
        headers = {"Authorization": self._auth_header()}
        if form is not None:
            body = urllib.parse.urlencode(_flatten_form(form)).encode("utf-8")
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        request = urllib.request.Request(
            url=f"{self.api_base}{path}",
            data=body,
            headers=headers,
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway HTTP error: {exc.code}") from exc
        except urllib.error.URLError as exc:
            raise PaymentGatewayError(f"Payment gateway connection error: {exc.reason}") from exc
        except json.JSONDecodeError as exc:
            raise PaymentGatewayError("Payment gateway returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise PaymentGatewayError("Payment gateway payload is not an object")
        return payload

    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        product_name: str,
        customer_email: str,
        metadata: dict[str, str],
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutSession:
        form = {
            "mode": "payment",
            "customer_email": customer_email,
            "line_items": [
                {
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": int(amount_cents),
                        "product_data": {"name": product_name},
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url
            or f"{self.site_domain}/dashboard/upgrade-success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": cancel_url or f"{self.site_domain}/dashboard/upgrade-package",
            "metadata": metadata,
        }
        return CheckoutSession.from_payload(self._call("POST", "/checkout/sessions", form))

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        quoted = urllib.parse.quote(session_id, safe="")
        return CheckoutSession.from_payload(self._call("GET", f"/checkout/sessions/{quoted}"))
