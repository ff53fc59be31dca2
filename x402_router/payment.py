"""
Payment client: pays providers in USDC through an abstract Signer.

Solana is the one concrete ledger. Transfers are SPL ``transfer_checked``
instructions between associated token accounts; missing accounts are
created in the same transaction, paid for by the sender. Other chains
are accepted as configuration but cannot pay yet.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from .errors import PaymentError, WalletError
from .models import FREE_CALL_TOKEN, SOLANA, Payment
from .signers.base import Signer
from .utils import USDC_DECIMALS, from_base_units, to_base_units

logger = logging.getLogger(__name__)

# Mainnet USDC mint (6 decimals)
USDC_MINT = Pubkey.from_string("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")


class PaymentClient:
    """
    Creates x402 payments and reports the signer's USDC balance.

    The client holds a reference to the signer but does not own it.
    """

    def __init__(
        self,
        signer: Signer,
        chain: str = SOLANA,
        rpc_endpoint: Optional[str] = None,
        connection: Optional[AsyncClient] = None,
    ):
        """
        Args:
            signer: Signer authorizing transfers.
            chain: Chain tag payments are settled on.
            rpc_endpoint: Solana JSON-RPC endpoint.
            connection: Pre-built RPC client (overrides rpc_endpoint).
        """
        self.signer = signer
        self.chain = chain
        self.connection = connection
        self._owns_connection = False

        if self.connection is None and chain == SOLANA and rpc_endpoint:
            self.connection = AsyncClient(rpc_endpoint, commitment=Confirmed)
            self._owns_connection = True

    async def create_payment(self, to: str, amount: float, resource: str) -> Payment:
        """
        Pay ``amount`` USDC to ``to`` for access to ``resource``.

        Blocks until the ledger confirms the transfer. A zero amount is
        not sent on-chain at all.

        Args:
            to: Recipient wallet address.
            amount: Amount in USDC.
            resource: Identifier of the paid resource.

        Returns:
            Payment whose token is the transaction signature.

        Raises:
            PaymentError: Unsupported chain or ledger failure.
            WalletError: The signer refused or failed.
        """
        if amount == 0:
            logger.warning(
                "Free API call: no transfer is made and the proof token is not signed"
            )
            return Payment(
                token=FREE_CALL_TOKEN,
                to=to,
                amount=0,
                resource=resource,
                chain=self.chain,
            )

        if self.chain != SOLANA:
            raise PaymentError(f"Payment creation not implemented for chain: {self.chain}")

        try:
            signature = await self._send_solana_transfer(to, amount)
        except (PaymentError, WalletError):
            raise
        except Exception as e:
            raise PaymentError(f"Failed to create payment: {e}") from e

        return Payment(
            token=signature,
            to=to,
            amount=amount,
            resource=resource,
            chain=self.chain,
        )

    async def _send_solana_transfer(self, to: str, amount: float) -> str:
        if self.connection is None:
            raise PaymentError("Solana connection not initialized")

        sender = self.signer.public_key
        recipient = Pubkey.from_string(to)

        sender_ata = get_associated_token_address(sender, USDC_MINT)
        recipient_ata = get_associated_token_address(recipient, USDC_MINT)

        sender_info = await self.connection.get_account_info(sender_ata)
        recipient_info = await self.connection.get_account_info(recipient_ata)

        instructions: List[Instruction] = []
        if sender_info.value is None:
            instructions.append(create_associated_token_account(sender, sender, USDC_MINT))
        if recipient_info.value is None:
            # sender pays the provider's account rent
            instructions.append(create_associated_token_account(sender, recipient, USDC_MINT))

        instructions.append(
            transfer_checked(
                TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=sender_ata,
                    mint=USDC_MINT,
                    dest=recipient_ata,
                    owner=sender,
                    amount=to_base_units(amount, USDC_DECIMALS),
                    decimals=USDC_DECIMALS,
                )
            )
        )

        latest = (await self.connection.get_latest_blockhash()).value
        message = Message.new_with_blockhash(instructions, sender, latest.blockhash)
        transaction = Transaction.new_unsigned(message)

        logger.info("Requesting signature from wallet...")
        signed = await self.signer.sign_transaction(transaction)

        logger.info("Sending payment of %s USDC to %s...", amount, to)
        sent = await self.connection.send_raw_transaction(
            bytes(signed),
            opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
        )
        signature = sent.value
        logger.info("Transaction signature: %s", signature)

        confirmation = await self.connection.confirm_transaction(
            signature,
            commitment=Confirmed,
            last_valid_block_height=latest.last_valid_block_height,
        )
        status = confirmation.value[0] if confirmation.value else None
        if status is not None and status.err is not None:
            raise PaymentError(f"Failed to create payment: transaction failed: {status.err}")

        logger.info("Payment confirmed")
        return str(signature)

    async def get_balance(self) -> float:
        """
        USDC balance of the signer's token account.

        A token account that does not exist yet has balance 0. Chains
        without a ledger implementation report 0 as well.

        Raises:
            PaymentError: The RPC node failed.
        """
        if self.chain != SOLANA or self.connection is None:
            return 0.0

        try:
            token_account = get_associated_token_address(
                self.signer.public_key, USDC_MINT, TOKEN_PROGRAM_ID
            )

            info = await self.connection.get_account_info(token_account)
            if info.value is None:
                return 0.0

            balance = await self.connection.get_token_account_balance(token_account)
            return from_base_units(balance.value.amount, USDC_DECIMALS)
        except Exception as e:
            raise PaymentError(f"Failed to get balance: {e}") from e

    async def close(self) -> None:
        """Close the RPC connection if this client opened it."""
        if self.connection is not None and self._owns_connection:
            await self.connection.close()
