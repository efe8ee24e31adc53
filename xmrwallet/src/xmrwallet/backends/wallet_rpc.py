"""
monero-wallet-rpc backend.
Speaks JSON-RPC 2.0 to the wallet's /json_rpc endpoint.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from xmrwallet.backends.base import (
    WalletRpc,
    WalletRpcError,
    WalletServiceError,
    WalletTransportError,
)
from xmrwallet.wallet.models import (
    AccountBalance,
    AccountKeyType,
    Payment,
    TransactionOutput,
    TransferRecipient,
)

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

# Timeout for transfer_split - building and relaying transactions can take a while
TRANSFER_RPC_TIMEOUT = 120.0

# Environment variable to enable sensitive logging (keys, raw results, etc.)
# WARNING: Enabling this will log secret keys to the log
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class MoneroWalletRpc(WalletRpc):
    """
    Wallet RPC client for monero-wallet-rpc.
    Authenticates with HTTP digest auth when credentials are given.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18082",
        rpc_user: str = "",
        rpc_password: str = "",
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.timeout = timeout
        auth = httpx.DigestAuth(rpc_user, rpc_password) if rpc_user else None
        self.client = httpx.AsyncClient(timeout=timeout, auth=auth, transport=transport)
        self._request_id = 0

    async def _rpc_call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Make a JSON-RPC call to the wallet.

        Args:
            method: RPC method name
            params: Method parameters
            timeout: Optional per-call timeout (uses the client default if not provided)

        Returns:
            RPC result

        Raises:
            WalletServiceError: On RPC errors
            WalletTransportError: On connection/timeout/HTTP errors
        """
        self._request_id += 1
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        try:
            response = await self.client.post(
                f"{self.rpc_url}/json_rpc",
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise WalletTransportError(f"{method} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise WalletTransportError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise WalletServiceError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise WalletServiceError(f"{method} returned an unexpected response")

        if data.get("error"):
            error_info = data["error"]
            if isinstance(error_info, dict):
                error_code = error_info.get("code")
                error_msg = error_info.get("message", str(error_info))
            else:
                error_code = None
                error_msg = str(error_info)
            raise WalletServiceError(f"RPC error {error_code}: {error_msg}", code=error_code)

        result = data.get("result")
        if SENSITIVE_LOGGING:
            logger.debug(f"{method} result: {result}")
        return result if result is not None else {}

    @staticmethod
    def _field(result: Any, name: str, method: str) -> Any:
        if not isinstance(result, dict) or name not in result:
            raise WalletServiceError(f"{method} result is missing '{name}'")
        return result[name]

    async def query_address(self) -> str:
        result = await self._rpc_call("getaddress")
        return str(self._field(result, "address", "getaddress"))

    async def query_balance(self) -> AccountBalance:
        result = await self._rpc_call("getbalance")
        try:
            return AccountBalance(
                total=self._field(result, "balance", "getbalance"),
                unlocked=self._field(result, "unlocked_balance", "getbalance"),
            )
        except ValidationError as e:
            raise WalletServiceError(f"getbalance returned invalid amounts: {e}") from e

    async def query_incoming_transfers(self) -> list[TransactionOutput]:
        result = await self._rpc_call("incoming_transfers", {"transfer_type": "all"})
        # The wallet omits "transfers" entirely when the account has none
        transfers = (result.get("transfers") or []) if isinstance(result, dict) else []

        try:
            return [
                TransactionOutput(
                    transaction_id=transfer["tx_hash"],
                    amount=transfer["amount"],
                    is_spendable=not transfer.get("spent", False),
                    global_index=transfer.get("global_index"),
                    transaction_size=transfer.get("tx_size"),
                )
                for transfer in transfers
            ]
        except (KeyError, TypeError, ValidationError) as e:
            raise WalletServiceError(f"incoming_transfers returned malformed outputs: {e}") from e

    async def query_key(self, key_type: AccountKeyType) -> str:
        result = await self._rpc_call("query_key", {"key_type": key_type.value})
        return str(self._field(result, "key", "query_key"))

    async def query_payments(
        self, payment_ids: Sequence[str] | None = None, minimum_block_height: int = 0
    ) -> list[Payment]:
        params: dict[str, Any] = {"min_block_height": minimum_block_height}
        if payment_ids:
            params["payment_ids"] = list(payment_ids)

        result = await self._rpc_call("get_bulk_payments", params)
        payments = (result.get("payments") or []) if isinstance(result, dict) else []

        try:
            return [
                Payment(
                    payment_id=payment["payment_id"],
                    transaction_id=payment["tx_hash"],
                    amount=payment["amount"],
                    block_height=payment.get("block_height", 0),
                    unlock_time=payment.get("unlock_time", 0),
                )
                for payment in payments
            ]
        except (KeyError, TypeError, ValidationError) as e:
            raise WalletServiceError(f"get_bulk_payments returned malformed payments: {e}") from e

    async def send_transfer_split(
        self,
        recipients: Sequence[TransferRecipient],
        payment_id: str | None,
        mix_count: int,
    ) -> list[str]:
        if not recipients:
            raise WalletRpcError("At least one recipient is required")

        params: dict[str, Any] = {
            "destinations": [
                {"amount": recipient.amount, "address": recipient.address}
                for recipient in recipients
            ],
            "mixin": mix_count,
        }
        if payment_id:
            params["payment_id"] = payment_id

        result = await self._rpc_call("transfer_split", params, timeout=TRANSFER_RPC_TIMEOUT)
        tx_hashes = (result.get("tx_hash_list") or []) if isinstance(result, dict) else []
        return [str(tx_hash) for tx_hash in tx_hashes]

    async def request_save_account(self) -> None:
        await self._rpc_call("store")

    async def close(self) -> None:
        await self.client.aclose()
