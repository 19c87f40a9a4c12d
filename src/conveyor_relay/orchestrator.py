"""
Meta-Transaction Orchestrator - event-driven façade.

Drives one submission end to end:

    CheckStatus → {DirectSubmit | BuildMessage → Quote? → Sign →
    BuildPermit? → SignPermit? → Dispatch → Verify} → Done

Every failure the protocol knows about comes back as a ``MetaTxOutcome`` with
an error kind; nothing is retried inside the orchestrator. Node errors on the
direct path and programming errors propagate unchanged.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from web3 import AsyncWeb3

from .config import ConveyorConfig
from .engine.events import (
    BaseEvent,
    Dependencies,
    DoneEvent,
    EventBus,
    MetaTxCall,
    MetaTxRequestEvent,
)
from .engine.exceptions import ConveyorError
from .engine.executors import EventChain
from .evm.abis import get_approve_abi, get_conveyor_base_abi
from .evm.chain import ChainReader
from .evm.receipts import ReceiptVerifier
from .evm.signatures import SignedMessageFactory, Wallet
from .fees.quoter import FeeQuoter
from .fees.sources import CoinGeckoPriceSource, PriceSource
from .flows import setup_event_bus, submit_direct
from .relay.builder import RelayRequestBuilder
from .relay.client import RelayClient
from .schemas.bases import MetaTxOutcome

logger = logging.getLogger(__name__)


class MetaTransactionOrchestrator:
    """Gas-sponsored contract calls through the Conveyor relay.

    Usage:
        ```python
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(get_rpc_url_from_env()))
        wallet = LocalAccountWallet(get_private_key_from_env())

        async with MetaTransactionOrchestrator(w3, wallet, ConveyorConfig.from_env()) as conveyor:
            outcome = await conveyor.submit(
                target, target_abi, "transfer", [recipient, 10],
                fee_token=dai_address,
                domain_name="Conveyor",
            )
            if not outcome.is_success():
                print(outcome.get_error_message())
        ```
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        wallet: Wallet,
        config: Optional[ConveyorConfig] = None,
        price_source: Optional[PriceSource] = None,
        relay_client: Optional[RelayClient] = None,
        event_bus: Optional[EventBus] = None,
        chain_reader: Optional[ChainReader] = None,
    ):
        """Initialize the orchestrator.

        Args:
            w3: ``AsyncWeb3`` instance for the target chain
            wallet: Signing and sending capability of the caller
            config: Resolved configuration (default: ``ConveyorConfig()``)
            price_source: Fee pricing source (default: CoinGecko)
            relay_client: Relay transport (default: client for ``config.relayer_url``)
            event_bus: Event bus (default: built-in handlers)
            chain_reader: On-chain reads (default: ``ChainReader(w3)``)
        """
        self.config = config or ConveyorConfig()
        self.w3 = w3
        self.wallet = wallet

        if relay_client is None:
            relay_client = RelayClient(self.config.relayer_url, timeout=self.config.request_timeout)
        if price_source is None:
            price_source = CoinGeckoPriceSource(timeout=self.config.request_timeout)

        self.depends = Dependencies(
            w3=w3,
            wallet=wallet,
            chain=chain_reader or ChainReader(w3),
            factory=SignedMessageFactory(wallet, permit_domain_name=self.config.permit_domain_name),
            quoter=FeeQuoter(price_source, no_fee_token=self.config.no_fee_token),
            builder=RelayRequestBuilder(self.config.api_version),
            relay=relay_client,
            verifier=ReceiptVerifier(w3, self.config.receipt_poll),
            forwarder_for=self.config.forwarder_for,
            no_fee_token=self.config.no_fee_token,
        )
        self.event_bus: EventBus = event_bus or setup_event_bus()

    async def __aenter__(self) -> "MetaTransactionOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.depends.relay.aclose()

    # =========================================================================
    # Event registration
    # =========================================================================

    def subscribe(self, event_class: type[BaseEvent], handler: Callable) -> None:
        """Register event handler.

        Args:
            event_class: Event type to handle
            handler: Async function(event, deps) -> Optional[BaseEvent]
        """
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Args:
            event_class: Event type to hook into
            hook: Async function(event, deps) -> None

        Example:
            ```python
            async def log_dispatch(event, deps):
                print(f"Dispatching: {event}")

            conveyor.add_hook(DispatchEvent, log_dispatch)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @conveyor.hook(DoneEvent)
            async def on_done(event, deps):
                await record(event.outcome)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        target: str,
        abi: List[Dict[str, Any]],
        method: str,
        params: Optional[Sequence[Any]] = None,
        *,
        fee_token: str,
        domain_name: str,
        duration: int = 3600,
        use_oracle_price_feed: bool = True,
        extend_categories: Optional[Sequence[int]] = None,
        use_permit: bool = False,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> MetaTxOutcome:
        """
        Execute ``method(*params)`` on ``target``, through the relay when the
        target has sponsorship enabled and directly otherwise.

        Args:
            target: Target contract address.
            abi: Target ABI.
            method: Function name.
            params: Positional arguments.
            fee_token: Fee token address, or the configured "no fee" sentinel.
            domain_name: EIP-712 domain name registered by the forwarder.
            duration: Seconds until the signed request expires.
            use_oracle_price_feed: Let the forwarder price the fee from its oracle.
            extend_categories: Extension category ids.
            use_permit: Sign a fee-token permit so no prior approval is needed.
            gas_limit: Gas limit for the fee estimate; estimated when omitted.
            gas_price: Gas price for the fee estimate; read from the node when omitted.

        Returns:
            The resolved outcome.
        """
        call = MetaTxCall(
            target=target,
            abi=abi,
            method=method,
            params=list(params or []),
            fee_token=fee_token,
            domain_name=domain_name,
            duration=duration,
            use_oracle_price_feed=use_oracle_price_feed,
            extend_categories=list(extend_categories or []),
            use_permit=use_permit,
            gas_limit=gas_limit,
            gas_price=gas_price,
        )

        event_chain = EventChain(self.event_bus, self.depends)
        outcome: Optional[MetaTxOutcome] = None
        try:
            async for event in event_chain.execute(MetaTxRequestEvent(call=call)):
                if isinstance(event, DoneEvent):
                    outcome = event.outcome
        except ConveyorError as e:
            logger.warning("Meta-transaction to %s failed: %s (%s)", target, e.message, e.kind.value)
            return MetaTxOutcome.failed(e.kind, e.message, tx_hash=e.tx_hash)

        if outcome is None:
            raise RuntimeError("Event chain finished without an outcome")
        logger.info("Meta-transaction to %s resolved: success=%s tx=%s", target, outcome.success, outcome.tx_hash)
        return outcome

    async def fetch_status(self, target: str) -> bool:
        """Whether ``target`` has sponsorship (Conveyor protection) enabled."""
        return await self.depends.chain.is_sponsorship_enabled(target)

    async def submit_transaction(
        self,
        target: str,
        abi: List[Dict[str, Any]],
        method: str,
        params: Optional[Sequence[Any]] = None,
    ) -> MetaTxOutcome:
        """
        Send ``method(*params)`` to ``target`` as an ordinary transaction.

        The call may revert if the method only accepts forwarded calls.
        """
        return await submit_direct(self.depends, target, abi, method, list(params or []))

    async def toggle_protection(self, target: str, enabled: bool) -> MetaTxOutcome:
        """
        Enable or disable sponsorship on ``target``. Only the target's owner
        can do this.
        """
        method = "enableConveyorProtection" if enabled else "disableConveyorProtection"
        return await submit_direct(self.depends, target, get_conveyor_base_abi(), method)

    async def approve_forwarder(self, fee_token: str, amount: int) -> MetaTxOutcome:
        """
        Approve the chain's forwarder to spend ``amount`` of ``fee_token``.

        Needed once by callers that do not use permits.
        """
        chain_id = await self.w3.eth.chain_id
        forwarder = self.config.forwarder_for(chain_id)
        return await submit_direct(self.depends, fee_token, get_approve_abi(), "approve", [forwarder, amount])

    async def compute_charged_fee(
        self,
        tx_hash: str,
        fee_collector: str,
        fee_token: Optional[str] = None,
    ) -> int:
        """Net fee retained by ``fee_collector`` in ``tx_hash``."""
        return await self.depends.verifier.compute_charged_fee(tx_hash, fee_collector, fee_token)
