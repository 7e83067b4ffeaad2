from __future__ import annotations

import base64
import itertools
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import RpcError


class RpcClient:
    """Async JSON-RPC reader for the handful of calls the client needs."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RpcError(f"{method} failed: {e}") from e
        if "error" in data:
            raise RpcError(f"RPC error: {data['error']}")
        return data.get("result")

    async def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        result = await self._call("getSlot", [{"commitment": commitment}])
        return int(result)

    async def get_balance(self, address: str, commitment: str = "confirmed") -> int:
        """Returns the lamport balance of an address."""
        result = await self._call("getBalance", [address, {"commitment": commitment}])
        return int(result["value"])

    async def get_token_account_balance(
        self, token_account: str, commitment: str = "confirmed"
    ) -> Dict[str, int]:
        """Returns {"amount": raw units, "decimals": n} for an SPL token account."""
        result = await self._call(
            "getTokenAccountBalance", [token_account, {"commitment": commitment}]
        )
        value = result["value"]
        return {"amount": int(value["amount"]), "decimals": int(value["decimals"])}

    async def get_account_info(
        self, address: str, commitment: str = "confirmed"
    ) -> Optional[bytes]:
        """Raw account data, or None when the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": commitment}],
        )
        value = result.get("value") if result else None
        if value is None:
            return None
        # value['data'] is [base64_str, "base64"]
        return base64.b64decode(value["data"][0])

    async def get_signature_statuses(
        self, signatures: Sequence[str]
    ) -> List[Optional[Dict[str, Any]]]:
        result = await self._call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": True}],
        )
        return list(result["value"])
