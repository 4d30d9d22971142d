"""External signer interface. The engine never holds private keys."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..core.errors import NotConnectedError, SubmitError
from ..core.models import SwapTransaction
from ..data.http import JsonHttpClient

logger = logging.getLogger(__name__)


class Signer(ABC):
    """Signs and submits transactions on behalf of the operator's wallet."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether a wallet is available for signing."""
        pass

    @property
    @abstractmethod
    def public_key(self) -> Optional[str]:
        """Base58 public key of the connected wallet."""
        pass

    @abstractmethod
    async def sign_and_send(self, transaction: SwapTransaction) -> str:
        """Sign, submit and return the transaction signature."""
        pass

    async def close(self):
        pass


class DisconnectedSigner(Signer):
    """Placeholder used until a wallet is connected."""

    @property
    def connected(self) -> bool:
        return False

    @property
    def public_key(self) -> Optional[str]:
        return None

    async def sign_and_send(self, transaction: SwapTransaction) -> str:
        raise NotConnectedError("No wallet connected")


class RemoteSigner(Signer):
    """
    Forwards unsigned transactions to an operator-run signing endpoint.

    Endpoint contract:
        GET  {url}/public-key -> {"publicKey": "<base58>"}
        POST {url}/sign-and-send {"transaction": "<base64>"} -> {"signature": "<base58>"}
    """

    def __init__(self, url: str, http: Optional[JsonHttpClient] = None):
        """Initialize remote signer."""
        self.url = url.rstrip("/")
        self._http = http or JsonHttpClient(timeout_seconds=20.0)
        self._public_key: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._public_key is not None

    @property
    def public_key(self) -> Optional[str]:
        return self._public_key

    async def connect(self) -> bool:
        """Fetch the wallet public key from the endpoint."""
        result = await self._http.get_json(f"{self.url}/public-key")
        key = result.data.get("publicKey") if result.ok and isinstance(result.data, dict) else None
        if not key:
            logger.warning(f"Remote signer at {self.url} unavailable: {result.error or 'no publicKey'}")
            self._public_key = None
            return False
        self._public_key = key
        logger.info(f"Remote signer connected ({key})")
        return True

    async def sign_and_send(self, transaction: SwapTransaction) -> str:
        if not self.connected:
            raise NotConnectedError("Remote signer is not connected")
        result = await self._http.post_json(
            f"{self.url}/sign-and-send",
            {"transaction": transaction.payload_b64},
        )
        if not result.ok:
            raise SubmitError(f"Signer rejected transaction: {result.error}")
        signature = result.data.get("signature") if isinstance(result.data, dict) else None
        if not signature:
            raise SubmitError("Signer returned no signature")
        return signature

    async def close(self):
        await self._http.close()
