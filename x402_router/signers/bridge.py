"""
Websocket wallet bridge adapter.

Forwards signing prompts to an external wallet (typically a browser
extension or mobile wallet) through a small JSON-over-websocket bridge.

Bridge protocol:
1. Client connects to the bridge URL
2. Client sends {"id": "<hex>", "method": "signTransaction",
   "params": {"transaction": "<base64 unsigned tx>"}}
3. Bridge shows the prompt to the user
4. Bridge answers {"id": "<hex>", "result": {"transaction": "<base64 signed tx>"}}
   or {"id": "<hex>", "error": {"message": "...", "code": ...}}

Messages with another id are ignored. The wait has no deadline unless
``timeout_ms`` is given: a human may take as long as they like.
"""

from __future__ import annotations

import asyncio
import json
import secrets
from base64 import b64decode, b64encode
from typing import Any, Dict, Optional, Union

import websockets
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..errors import WalletError


class WebSocketWalletAdapter:
    """
    Wallet adapter talking to a websocket signing bridge.

    Use with WalletAdapterSigner, which serializes prompts.
    """

    def __init__(
        self,
        bridge_url: str,
        public_key: Union[str, Pubkey],
        timeout_ms: Optional[int] = None,
    ):
        """
        Args:
            bridge_url: ws:// or wss:// URL of the bridge.
            public_key: Address of the wallet connected to the bridge.
            timeout_ms: Optional deadline per signing prompt.
        """
        if not bridge_url.startswith(("ws://", "wss://")):
            raise WalletError(f"Invalid wallet bridge URL: {bridge_url} (expected ws:// or wss://)")

        self.bridge_url = bridge_url
        self.public_key = public_key
        self.timeout_ms = timeout_ms
        self._ws: Optional[Any] = None
        self._connected = False

    async def _ensure_connected(self) -> Any:
        """Ensure we have an active WebSocket connection."""
        if self._ws is not None and self._connected:
            try:
                await self._ws.ping()
                return self._ws
            except Exception:
                self._connected = False
                self._ws = None

        try:
            self._ws = await websockets.connect(self.bridge_url)
        except (OSError, websockets.WebSocketException) as e:
            raise WalletError(f"Could not reach wallet bridge at {self.bridge_url}: {e}") from e
        self._connected = True
        return self._ws

    async def _request(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one bridge request and wait for the matching answer.

        Returns:
            The ``result`` object of the answer.
        """
        ws = await self._ensure_connected()

        request_id = secrets.token_hex(16)
        await ws.send(json.dumps({"id": request_id, "method": method, "params": params}))

        loop = asyncio.get_running_loop()
        deadline = None
        if self.timeout_ms is not None:
            deadline = loop.time() + self.timeout_ms / 1000

        while True:
            remaining = None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break

            try:
                raw_msg = await asyncio.wait_for(ws.recv(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            except websockets.WebSocketException as e:
                self._connected = False
                raise WalletError(f"Wallet bridge connection lost: {e}") from e

            try:
                msg = json.loads(raw_msg)
            except ValueError:
                continue

            if not isinstance(msg, dict) or msg.get("id") != request_id:
                continue

            if msg.get("error"):
                error = msg["error"]
                raise WalletError(
                    f"Wallet bridge error: {error.get('message', 'Unknown error')} "
                    f"(code: {error.get('code', 'N/A')})"
                )

            return msg.get("result") or {}

        raise WalletError(f"Wallet bridge request timed out after {self.timeout_ms}ms")

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """
        Ask the connected wallet to sign a transaction.

        Args:
            transaction: Unsigned transaction.

        Returns:
            The signed transaction returned by the wallet.
        """
        result = await self._request("signTransaction", {
            "transaction": b64encode(bytes(transaction)).decode("ascii"),
        })

        encoded = result.get("transaction")
        if not encoded:
            raise WalletError("Wallet bridge returned no transaction")

        try:
            return Transaction.from_bytes(b64decode(encoded))
        except Exception as e:
            raise WalletError(f"Wallet bridge returned a malformed transaction: {e}") from e

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._ws is not None:
            try:
                await self._ws.close()
            finally:
                self._ws = None
                self._connected = False
