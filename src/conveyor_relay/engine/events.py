"""
Event-driven system with typed events and clear data flow.

Each stage of a meta-transaction submission is an event. Events carry their
own data, handlers return next events, and dependencies are injected
separately from business data:

    MetaTxRequestEvent (CheckStatus)
        -> DirectSubmitEvent -> DoneEvent
        -> BuildMessageEvent -> QuoteEvent? -> SignEvent
           -> BuildPermitEvent? -> SignPermitEvent?
           -> DispatchEvent -> VerifyEvent -> DoneEvent
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Callable, Optional, List, Awaitable, AsyncGenerator

from pydantic import BaseModel, ConfigDict, Field
from web3 import AsyncWeb3

from ..evm.chain import ChainReader
from ..evm.receipts import ReceiptVerifier
from ..evm.schemas import FeeTokenKind, ForwardRequest, SignaturePackage
from ..evm.signatures import SignedMessageFactory, Wallet
from ..fees.quoter import FeeQuoter
from ..relay.builder import RelayRequestBuilder
from ..relay.client import RelayClient
from ..schemas.bases import MetaTxOutcome

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Call Data ====================

class MetaTxCall(BaseModel):
    """
    A contract call the caller wants executed.

    Attributes:
        target: Target contract address.
        abi: ABI of the target (at least ``method``).
        method: Function name.
        params: Positional arguments of ``method``.
        fee_token: Token the relay fee is paid in (sentinel for no fee).
        duration: Seconds until the signed request expires.
        domain_name: EIP-712 domain name of the forwarder.
        use_oracle_price_feed: Let the forwarder price the fee from its oracle.
        extend_categories: Extension category ids.
        use_permit: Sign a fee-token permit instead of relying on a prior approval.
        gas_limit: Gas limit used for the fee estimate; estimated when omitted.
        gas_price: Gas price used for the fee estimate; read from the node when omitted.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    target: str
    abi: List[Dict[str, Any]]
    method: str
    params: List[Any] = Field(default_factory=list)
    fee_token: str
    duration: int = Field(default=3600, gt=0)
    domain_name: str = "Conveyor"
    use_oracle_price_feed: bool = True
    extend_categories: List[int] = Field(default_factory=list)
    use_permit: bool = False
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None


class MetaTxDraft(BaseModel):
    """
    Everything read from the chain for one call, before signing.

    ``max_token_amount`` is filled in by the quote stage.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    call: MetaTxCall
    chain_id: int
    signer: str
    forwarder: str
    data: str
    nonce: int
    deadline: int
    caller_is_contract: bool = False
    fee_token_kind: FeeTokenKind = FeeTokenKind.STANDARD_PERMIT
    max_token_amount: int = 0

    def to_forward_request(self) -> ForwardRequest:
        return ForwardRequest(
            from_=self.signer,
            to=self.call.target,
            fee_token=self.call.fee_token,
            use_oracle_price_feed=self.call.use_oracle_price_feed,
            max_token_amount=self.max_token_amount,
            deadline=self.deadline,
            nonce=self.nonce,
            data=self.data,
            extend_categories=self.call.extend_categories,
        )


# ==================== Trigger Event (External) ====================

class MetaTxRequestEvent(BaseModel, BaseEvent):
    """External trigger: submit a call. Handled by the status check."""
    call: MetaTxCall

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"MetaTxRequestEvent(target={self.call.target}, method={self.call.method})"


# ==================== Stage Events ====================

class DirectSubmitEvent(BaseModel, BaseEvent):
    """Sponsorship is disabled: send an ordinary transaction."""
    call: MetaTxCall

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"DirectSubmitEvent(target={self.call.target})"


class BuildMessageEvent(BaseModel, BaseEvent):
    """Sponsorship is enabled: gather nonce, deadline and calldata."""
    call: MetaTxCall

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"BuildMessageEvent(target={self.call.target})"


class QuoteEvent(BaseModel, BaseEvent):
    """Price the fee for a draft."""
    draft: MetaTxDraft

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"QuoteEvent(fee_token={self.draft.call.fee_token})"


class SignEvent(BaseModel, BaseEvent):
    """Build and sign the forward document."""
    draft: MetaTxDraft

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SignEvent(nonce={self.draft.nonce}, max_token_amount={self.draft.max_token_amount})"


class BuildPermitEvent(BaseModel, BaseEvent):
    """Build the fee-token permit document."""
    draft: MetaTxDraft
    forward: SignaturePackage

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"BuildPermitEvent(fee_token={self.draft.call.fee_token})"


class SignPermitEvent(BaseModel, BaseEvent):
    """Sign the fee-token permit document."""
    draft: MetaTxDraft
    forward: SignaturePackage
    permit_document: Dict[str, Any]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SignPermitEvent(kind={self.draft.fee_token_kind.value})"


class DispatchEvent(BaseModel, BaseEvent):
    """Send the signed documents to the relay."""
    draft: MetaTxDraft
    forward: SignaturePackage
    permit: Optional[SignaturePackage] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"DispatchEvent(with_permit={self.permit is not None})"


class VerifyEvent(BaseModel, BaseEvent):
    """Resolve the true outcome of a relayed transaction."""
    draft: MetaTxDraft
    tx_hash: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"VerifyEvent(tx_hash={self.tx_hash})"


class DoneEvent(BaseModel, BaseEvent):
    """Result: terminal outcome of the submission."""
    outcome: MetaTxOutcome

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"DoneEvent(success={self.outcome.success}, tx_hash={self.outcome.tx_hash})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    w3: AsyncWeb3
    wallet: Wallet
    chain: ChainReader
    factory: SignedMessageFactory
    quoter: FeeQuoter
    builder: RelayRequestBuilder
    relay: RelayClient
    verifier: ReceiptVerifier
    forwarder_for: Callable[[int], str]
    no_fee_token: str


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        if event_class not in self._subscribers:
            self._subscribers[event_class] = []
        self._subscribers[event_class].append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.

        Args:
            event_class: The event class to hook into.
            hook_func: The hook function to call when the event is published.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Handler must be a coroutine function, got {type(hook_func).__name__}")

        if event_class not in self._hooks:
            self._hooks[event_class] = []
        self._hooks[event_class].append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first (concurrently, all awaited), then all subscribers run in parallel.

        Args:
            event: The event to dispatch.
            deps: Dependencies container with injected services.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result
