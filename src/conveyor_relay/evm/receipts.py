"""
Receipt Verification

After a relayed call lands on-chain the wrapping transaction's status only
says that the forwarder ran. Whether the *forwarded* call succeeded is
reported by the forwarder's ``MetaStatus(sender, success, error)`` event,
emitted instead of a revert so that the fee is still collected. The
``ReceiptVerifier`` polls for the receipt with bounded exponential backoff,
then reads that event to resolve the true outcome.

It also computes the fee actually retained by a fee collector by netting the
ERC-20 ``Transfer`` events into and out of it within the same receipt.

Results are returned as ``MetaTxOutcome`` values; nothing here raises for an
unsuccessful call.
"""

import asyncio
import logging
from typing import Any, Dict, Iterator, Optional

from eth_abi import decode
from eth_utils import to_hex
from pydantic import BaseModel, ConfigDict, Field
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from .constants import META_STATUS_TOPIC, TRANSFER_TOPIC
from ..engine.exceptions import ReceiptTimeout
from ..schemas.bases import MetaTxErrorKind, MetaTxOutcome, SubmissionPath

logger = logging.getLogger(__name__)


class ReceiptPollPolicy(BaseModel):
    """
    Bounded exponential backoff for receipt polling.

    Attributes:
        max_attempts: Receipt lookups before giving up.
        initial_delay: Seconds to wait after the first miss.
        multiplier: Growth factor of the delay between misses.
        max_delay: Upper bound on any single delay.
    """
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=30, ge=1, description="Maximum receipt lookups")
    initial_delay: float = Field(default=1.0, ge=0, description="First delay in seconds")
    multiplier: float = Field(default=2.0, ge=1, description="Delay growth factor")
    max_delay: float = Field(default=15.0, ge=0, description="Delay ceiling in seconds")

    def delays(self) -> Iterator[float]:
        """Yield the ``max_attempts - 1`` waits that separate the lookups."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value).lower()
    return str(value).lower()


def _data_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raw = value[2:] if value.startswith("0x") else value
    return bytes.fromhex(raw)


def _topic_address(topic: Any) -> str:
    # indexed address: last 20 bytes of the 32-byte topic
    return "0x" + _hex(topic)[-40:]


class ReceiptVerifier:
    """
    Resolves the true outcome of a submitted transaction from its receipt.

    Args:
        w3: ``AsyncWeb3`` instance for the chain the transaction was sent on.
        policy: Polling bound; defaults to :class:`ReceiptPollPolicy`.
    """

    def __init__(self, w3: AsyncWeb3, policy: Optional[ReceiptPollPolicy] = None):
        self.w3 = w3
        self.policy = policy or ReceiptPollPolicy()

    async def wait_for_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """
        Poll ``eth_getTransactionReceipt`` under the configured policy.

        Returns:
            The receipt, or ``None`` if it did not materialize in time.
        """
        delays = self.policy.delays()
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
                if receipt:
                    return receipt
            except TransactionNotFound:
                pass  # still pending

            delay = next(delays, None)
            if delay is None:
                break
            logger.debug("Receipt for %s not found (attempt %d), retrying in %.1fs", tx_hash, attempt, delay)
            await self._sleep_async(delay)
        return None

    @staticmethod
    async def _sleep_async(seconds: float):
        await asyncio.sleep(seconds)

    @staticmethod
    def find_meta_status(receipt: Dict[str, Any], forwarder: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Decode the ``MetaStatus`` events in ``receipt``.

        Every status log is inspected; the first one reporting
        ``success=false`` wins. When ``forwarder`` is given, status logs emitted by any other
        contract are ignored.

        Returns:
            ``{"sender", "success", "error"}`` of the first failure, else of
            the first success, or ``None`` when absent.
        """
        first = None
        for log in receipt.get("logs", []):
            topics = log.get("topics") or []
            if not topics or _hex(topics[0]) != META_STATUS_TOPIC:
                continue
            if forwarder is not None and str(log.get("address", "")).lower() != forwarder.lower():
                continue
            sender, success, error = decode(["address", "bool", "string"], _data_bytes(log["data"]))
            status = {"sender": sender, "success": success, "error": error}
            if not success:
                return status
            if first is None:
                first = status
        return first

    async def resolve(
        self,
        tx_hash: str,
        path: SubmissionPath = SubmissionPath.RELAY,
        forwarder: Optional[str] = None,
    ) -> MetaTxOutcome:
        """
        Resolve the final outcome of ``tx_hash``.

        Order of checks:
            1. No receipt within the policy: ``RECEIPT_TIMEOUT``.
            2. Receipt status 0: ``TRANSACTION_REVERTED``.
            3. Any ``MetaStatus`` with ``success=false``: ``FORWARDED_CALL_FAILED``
               carrying the decoded error string.
            4. Otherwise success.

        The transaction hash is preserved in every outcome.

        Args:
            tx_hash: Hash of the wrapping (or direct) transaction.
            path: Submission path recorded on the outcome.
            forwarder: Only ``MetaStatus`` logs from this address count.
        """
        receipt = await self.wait_for_receipt(tx_hash)
        if receipt is None:
            logger.warning("Receipt for %s not available after %d attempts", tx_hash, self.policy.max_attempts)
            return MetaTxOutcome.failed(
                MetaTxErrorKind.RECEIPT_TIMEOUT,
                f"Receipt not available after {self.policy.max_attempts} attempts",
                tx_hash=tx_hash,
                path=path,
            )

        if receipt.get("status") == 0:
            logger.warning("Transaction %s reverted", tx_hash)
            return MetaTxOutcome.failed(
                MetaTxErrorKind.TRANSACTION_REVERTED,
                "Transaction Reverted",
                tx_hash=tx_hash,
                path=path,
            )

        status = self.find_meta_status(receipt, forwarder=forwarder)
        if status is not None and not status["success"]:
            logger.warning("Forwarded call in %s failed: %s", tx_hash, status["error"])
            return MetaTxOutcome.failed(
                MetaTxErrorKind.FORWARDED_CALL_FAILED,
                status["error"],
                tx_hash=tx_hash,
                path=path,
            )

        logger.info("Transaction %s succeeded", tx_hash)
        return MetaTxOutcome.succeeded(tx_hash, path=path)

    async def compute_charged_fee(
        self,
        tx_hash: str,
        fee_collector: str,
        fee_token: Optional[str] = None,
    ) -> int:
        """
        Net amount of token retained by ``fee_collector`` in ``tx_hash``.

        Sums ``Transfer`` values into the collector and subtracts those out of
        it, so a refund of an over-estimated fee in the same transaction is
        accounted for.

        Args:
            tx_hash: Wrapping transaction hash.
            fee_collector: Address that receives fees.
            fee_token: When given, only transfers emitted by this token count.

        Returns:
            Net fee in token units.

        Raises:
            ReceiptTimeout: The receipt did not materialize in time.
        """
        receipt = await self.wait_for_receipt(tx_hash)
        if receipt is None:
            raise ReceiptTimeout(f"Receipt not available for {tx_hash}", tx_hash=tx_hash)

        collector = fee_collector.lower()
        total = 0
        for log in receipt.get("logs", []):
            topics = log.get("topics") or []
            if len(topics) != 3 or _hex(topics[0]) != TRANSFER_TOPIC:
                continue
            if fee_token is not None and str(log.get("address", "")).lower() != fee_token.lower():
                continue
            (value,) = decode(["uint256"], _data_bytes(log["data"]))
            if _topic_address(topics[2]) == collector:
                total += value
            if _topic_address(topics[1]) == collector:
                total -= value
        return total
