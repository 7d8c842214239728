import base64
from datetime import datetime
from typing import Optional, Tuple

import httpx

from shared.utils import Settings


class DarajaError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class DarajaClient:
    """Client for the Safaricom Daraja OAuth and STK push endpoints."""

    def __init__(
        self,
        consumer_key: Optional[str],
        consumer_secret: Optional[str],
        short_code: Optional[str],
        passkey: Optional[str],
        callback_url: Optional[str],
        oauth_url: str,
        stk_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.short_code = short_code
        self.passkey = passkey
        self.callback_url = callback_url
        self.oauth_url = oauth_url
        self.stk_url = stk_url
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "DarajaClient":
        return cls(
            consumer_key=settings.MPESA_CONSUMER_KEY,
            consumer_secret=settings.MPESA_CONSUMER_SECRET,
            short_code=settings.MPESA_SHORT_CODE,
            passkey=settings.MPESA_PASSKEY,
            callback_url=settings.MPESA_CALLBACK_URL,
            oauth_url=settings.MPESA_OAUTH_URL,
            stk_url=settings.MPESA_STK_URL,
            transport=transport,
        )

    def is_configured(self) -> bool:
        return all([self.consumer_key, self.consumer_secret, self.short_code, self.passkey, self.callback_url])

    @staticmethod
    def timestamp(now: Optional[datetime] = None) -> str:
        return (now or datetime.utcnow()).strftime("%Y%m%d%H%M%S")

    def password(self, timestamp: str) -> str:
        raw = f"{self.short_code}{self.passkey}{timestamp}".encode()
        return base64.b64encode(raw).decode()

    def build_stk_body(self, amount: float, msisdn: str, account_reference: str, description: str,
                       timestamp: Optional[str] = None) -> dict:
        timestamp = timestamp or self.timestamp()
        return {
            "BusinessShortCode": self.short_code,
            "Password": self.password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(round(amount)),
            "PartyA": msisdn,
            "PartyB": self.short_code,
            "PhoneNumber": msisdn,
            "CallBackURL": self.callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": description,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def get_access_token(self) -> str:
        async with self._client() as client:
            try:
                response = await client.get(self.oauth_url, auth=(self.consumer_key, self.consumer_secret))
                response.raise_for_status()
                token = response.json().get("access_token")
            except (httpx.HTTPError, ValueError) as e:
                raise DarajaError(f"Failed to acquire OAuth token: {e}")
        if not token:
            raise DarajaError("Failed to acquire OAuth token: empty token")
        return token

    async def stk_push(self, amount: float, msisdn: str, account_reference: str, description: str) -> Tuple[dict, dict]:
        """Send an STK push. Returns the request body and the gateway's acknowledgement."""
        if not self.is_configured():
            raise DarajaError("Incomplete MPESA configuration", status_code=500)

        token = await self.get_access_token()
        body = self.build_stk_body(amount, msisdn, account_reference, description)

        async with self._client() as client:
            try:
                response = await client.post(
                    self.stk_url,
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
                # Daraja reports request errors in a JSON body alongside 4xx codes
                data = response.json()
            except httpx.RequestError as e:
                raise DarajaError(f"STK push request failed: {e}")
            except ValueError:
                raise DarajaError(f"STK push returned non-JSON response (status {response.status_code})")

        return body, data
