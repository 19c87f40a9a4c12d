"""
Built-in event handlers for the meta-transaction workflow.

Implements the submission flow: status check → (direct submit | build
message → quote → sign → permit → dispatch → verify) → done.

Handlers raise ``ConveyorError`` subclasses for protocol failures; the
orchestrator folds them into a ``MetaTxOutcome``.
"""

import logging
import time
from typing import Any, Dict, List, Sequence

from .engine.events import (
    EventBus,
    Dependencies,
    MetaTxRequestEvent,
    MetaTxDraft,
    DirectSubmitEvent,
    BuildMessageEvent,
    QuoteEvent,
    SignEvent,
    BuildPermitEvent,
    SignPermitEvent,
    DispatchEvent,
    VerifyEvent,
    DoneEvent,
)
from .engine.exceptions import NonceAlreadyUsed, RelayRejected
from .evm.constants import is_no_fee_token, resolve_fee_token_kind
from .evm.schemas import SignerKind
from .evm.signatures import SignRequest
from .relay.builder import select_operation
from .schemas.bases import MetaTxOutcome, SubmissionPath

logger = logging.getLogger(__name__)


def _signer_kind(draft: MetaTxDraft) -> SignerKind:
    return SignerKind.CONTRACT if draft.caller_is_contract else SignerKind.EOA


async def submit_direct(
    deps: Dependencies,
    target: str,
    abi: List[Dict[str, Any]],
    method: str,
    params: Sequence[Any] = (),
) -> MetaTxOutcome:
    """
    Encode ``method(*params)`` and send it as an ordinary transaction.

    Node errors while sending propagate unchanged; a mined revert is
    reported as a ``TRANSACTION_REVERTED`` outcome.
    """
    data = deps.chain.encode_call(target, abi, method, params)
    tx_hash = await deps.wallet.send_transaction(deps.w3, {"to": target, "data": data})
    logger.info("Sent %s on %s directly: %s", method, target, tx_hash)
    return await deps.verifier.resolve(tx_hash, path=SubmissionPath.DIRECT)


# ==================== Event Handlers ====================

async def handle_check_status(
    event: MetaTxRequestEvent,
    deps: Dependencies
) -> BuildMessageEvent | DirectSubmitEvent:
    """Route to the relay flow only when the target has sponsorship enabled."""
    if await deps.chain.is_sponsorship_enabled(event.call.target):
        return BuildMessageEvent(call=event.call)
    logger.info("Sponsorship disabled on %s, submitting directly", event.call.target)
    return DirectSubmitEvent(call=event.call)


async def handle_direct_submit(
    event: DirectSubmitEvent,
    deps: Dependencies
) -> DoneEvent:
    call = event.call
    outcome = await submit_direct(deps, call.target, call.abi, call.method, call.params)
    return DoneEvent(outcome=outcome)


async def handle_build_message(
    event: BuildMessageEvent,
    deps: Dependencies
) -> QuoteEvent | SignEvent:
    """Read nonce, caller kind and chain id, and fix the deadline."""
    call = event.call
    chain_id = await deps.w3.eth.chain_id
    signer = deps.wallet.address
    forwarder = deps.forwarder_for(chain_id)

    draft = MetaTxDraft(
        call=call,
        chain_id=chain_id,
        signer=signer,
        forwarder=forwarder,
        data=deps.chain.encode_call(call.target, call.abi, call.method, call.params),
        nonce=await deps.chain.current_nonce(forwarder, signer),
        deadline=int(time.time()) + call.duration,
        caller_is_contract=await deps.chain.has_on_chain_code(signer),
        fee_token_kind=resolve_fee_token_kind(chain_id, call.fee_token),
    )

    if is_no_fee_token(call.fee_token, deps.no_fee_token):
        return SignEvent(draft=draft)
    return QuoteEvent(draft=draft)


async def handle_quote(
    event: QuoteEvent,
    deps: Dependencies
) -> SignEvent:
    draft = event.draft
    call = draft.call
    decimals = await deps.chain.token_decimals(call.fee_token)

    gas_limit = call.gas_limit
    if gas_limit is None:
        gas_limit = await deps.w3.eth.estimate_gas({"from": draft.signer, "to": call.target, "data": draft.data})
    gas_price = call.gas_price
    if gas_price is None:
        gas_price = await deps.w3.eth.gas_price

    amount = await deps.quoter.quote(draft.chain_id, call.fee_token, decimals, int(gas_limit) * int(gas_price))
    return SignEvent(draft=draft.model_copy(update={"max_token_amount": amount}))


async def handle_sign(
    event: SignEvent,
    deps: Dependencies
) -> BuildPermitEvent | DispatchEvent:
    draft = event.draft
    _, sign_request = deps.factory.build_forward_message(
        draft.chain_id,
        draft.forwarder,
        draft.call.domain_name,
        draft.to_forward_request(),
    )
    forward = await sign_request.sign(_signer_kind(draft))

    if draft.call.use_permit and not is_no_fee_token(draft.call.fee_token, deps.no_fee_token):
        return BuildPermitEvent(draft=draft, forward=forward)
    return DispatchEvent(draft=draft, forward=forward)


async def handle_build_permit(
    event: BuildPermitEvent,
    deps: Dependencies
) -> SignPermitEvent:
    draft = event.draft
    token_nonce = await deps.chain.token_nonce(draft.call.fee_token, draft.signer)
    document, _ = deps.factory.build_permit_message(
        draft.chain_id,
        draft.call.fee_token,
        draft.fee_token_kind,
        draft.signer,
        draft.forwarder,
        draft.deadline,
        token_nonce,
    )
    return SignPermitEvent(draft=draft, forward=event.forward, permit_document=document)


async def handle_sign_permit(
    event: SignPermitEvent,
    deps: Dependencies
) -> DispatchEvent:
    draft = event.draft
    sign_request = SignRequest(document=event.permit_document, signer=draft.signer, wallet=deps.wallet)
    permit = await sign_request.sign(_signer_kind(draft))
    return DispatchEvent(draft=draft, forward=event.forward, permit=permit)


async def handle_dispatch(
    event: DispatchEvent,
    deps: Dependencies
) -> VerifyEvent:
    """
    Send the payload. A rejection is re-checked against the forwarder nonce
    to tell a consumed nonce apart from any other relay refusal.
    """
    draft = event.draft
    operation = select_operation(
        has_permit=event.permit is not None,
        fee_token_kind=draft.fee_token_kind,
        caller_is_contract=draft.caller_is_contract,
    )
    payload = deps.builder.build(
        operation,
        event.forward,
        permit=event.permit,
        caller_is_contract=draft.caller_is_contract,
    )
    result = await deps.relay.dispatch(payload)

    if not result.accepted:
        current_nonce = await deps.chain.current_nonce(draft.forwarder, draft.signer)
        if current_nonce > draft.nonce:
            raise NonceAlreadyUsed(
                f"Forwarder nonce {draft.nonce} already used (current {current_nonce})",
                signed_nonce=draft.nonce,
                current_nonce=current_nonce,
            )
        raise RelayRejected(result.error_message or "Relay rejected the request", tx_hash=result.tx_hash)

    if not result.tx_hash:
        raise RelayRejected("Relay accepted the request without a transaction hash")
    return VerifyEvent(draft=draft, tx_hash=result.tx_hash)


async def handle_verify(
    event: VerifyEvent,
    deps: Dependencies
) -> DoneEvent:
    outcome = await deps.verifier.resolve(
        event.tx_hash,
        path=SubmissionPath.RELAY,
        forwarder=event.draft.forwarder,
    )
    return DoneEvent(outcome=outcome)


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with built-in handlers."""
    event_bus = EventBus()

    event_bus.subscribe(MetaTxRequestEvent, handle_check_status)
    event_bus.subscribe(DirectSubmitEvent, handle_direct_submit)
    event_bus.subscribe(BuildMessageEvent, handle_build_message)
    event_bus.subscribe(QuoteEvent, handle_quote)
    event_bus.subscribe(SignEvent, handle_sign)
    event_bus.subscribe(BuildPermitEvent, handle_build_permit)
    event_bus.subscribe(SignPermitEvent, handle_sign_permit)
    event_bus.subscribe(DispatchEvent, handle_dispatch)
    event_bus.subscribe(VerifyEvent, handle_verify)

    return event_bus
