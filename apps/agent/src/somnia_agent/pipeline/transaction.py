"""Single-transaction execution: preflight, gas plan, submit, confirm, decode.

Every step runs at most once per call. Nothing here retries, resubmits with a
different gas limit, or de-duplicates identical requests: invoking ``execute``
twice broadcasts two transactions.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from somnia_agent.chain.abis import ERC20_ABI
from somnia_agent.chain.client import LedgerClient
from somnia_agent.chain.events import EventDecoder
from somnia_agent.chain.tokens import read_token_balance
from somnia_agent.chain.units import format_units
from somnia_agent.errors import (
    ActionError,
    ExpectedEventNotFoundError,
    InsufficientBalanceError,
    NetworkError,
    SubmissionError,
)
from somnia_agent.state.models import (
    CallSpec,
    EventExpectation,
    GasPlan,
    PreflightRequirement,
    PreflightResult,
    TransactionOutcome,
)

logger = structlog.get_logger(__name__)


def buffered_gas_limit(estimate: int) -> int:
    """Return ``ceil(estimate * 1.2)`` without going through floats."""
    return -(-int(estimate) * 6 // 5)


class TransactionPipeline:
    def __init__(self, *, ledger: LedgerClient) -> None:
        self._ledger = ledger

    @property
    def ledger(self) -> LedgerClient:
        return self._ledger

    def read_balance(self, address: str, token_address: Optional[str] = None) -> int:
        if token_address:
            return read_token_balance(self._ledger, token_address, address)
        return int(self._ledger.native_balance(address))

    def check_balance(self, address: str, requirement: PreflightRequirement) -> PreflightResult:
        balance = self.read_balance(address, requirement.token_address)
        if balance < requirement.required:
            raise InsufficientBalanceError(
                balance=balance,
                required=requirement.required,
                asset=requirement.asset,
                formatted_balance=format_units(balance, requirement.decimals),
                message=(
                    f"Insufficient {requirement.symbol} balance"
                    if requirement.symbol
                    else "Insufficient balance"
                ),
            )

        if requirement.require_gas:
            gas_balance = balance if not requirement.token_address else self.read_balance(address)
            if gas_balance == 0:
                raise InsufficientBalanceError(
                    balance=0,
                    required=0,
                    asset="native",
                    formatted_balance=format_units(0),
                    message="Insufficient balance for gas fees",
                )

        return PreflightResult(balance=balance, required=requirement.required, passed=True)

    def plan_gas(self, sender: str, call: CallSpec) -> GasPlan:
        try:
            estimate = int(self._ledger.estimate_gas(sender, call))
        except NetworkError as exc:
            logger.warning(
                "gas_estimation_failed",
                step=call.label or call.function or "transfer",
                error=exc.message,
                fallback="network_default",
            )
            return GasPlan()
        limit = buffered_gas_limit(estimate)
        logger.info("gas_estimated", step=call.label or call.function, estimate=estimate, gas_limit=limit)
        return GasPlan(estimate=estimate, limit=limit)

    def execute(
        self,
        signer: Any,
        call: CallSpec,
        *,
        preflight: Optional[PreflightRequirement] = None,
        expect_event: Optional[EventExpectation] = None,
    ) -> TransactionOutcome:
        sender = str(signer.address)
        if preflight is not None:
            self.check_balance(sender, preflight)

        gas_plan = self.plan_gas(sender, call)
        tx_hash = self._ledger.send_transaction(signer, call, gas_limit=gas_plan.limit)
        logger.info("transaction_submitted", step=call.label or call.function, tx_hash=tx_hash)

        receipt = self._ledger.wait_for_receipt(tx_hash)
        block_number = int(receipt.get("blockNumber") or 0)
        if int(receipt.get("status", 1)) == 0:
            raise SubmissionError(
                "Transaction reverted on chain.",
                reason="execution reverted",
                provider_code="CALL_EXCEPTION",
                details={"transactionHash": tx_hash, "blockNumber": block_number},
            )
        logger.info("transaction_confirmed", tx_hash=tx_hash, block_number=block_number)

        outcome = TransactionOutcome(
            tx_hash=str(receipt.get("transactionHash") or tx_hash),
            block_number=block_number,
            gas_used=int(receipt.get("gasUsed") or 0),
            logs=list(receipt.get("logs") or []),
            gas_plan=gas_plan,
        )

        if expect_event is not None:
            decoded = EventDecoder(expect_event.abi).find_first(outcome.logs, expect_event.name)
            if decoded is None:
                raise ExpectedEventNotFoundError(expect_event.name, tx_hash=outcome.tx_hash)
            outcome.event = decoded
        return outcome

    def ensure_allowance(
        self,
        signer: Any,
        *,
        token_address: str,
        spender: str,
        amount: int,
    ) -> Optional[TransactionOutcome]:
        allowance = int(
            self._ledger.call(
                CallSpec(
                    to=token_address,
                    abi=ERC20_ABI,
                    function="allowance",
                    args=(str(signer.address), spender),
                )
            )
        )
        if allowance >= amount:
            return None

        logger.info("approval_required", token=token_address, spender=spender, allowance=allowance)
        return self.execute(
            signer,
            CallSpec(
                to=token_address,
                abi=ERC20_ABI,
                function="approve",
                args=(spender, int(amount)),
                label="approve",
            ),
        )

    def execute_with_allowance(
        self,
        signer: Any,
        call: CallSpec,
        *,
        token_address: str,
        spender: str,
        amount: int,
        preflight: Optional[PreflightRequirement] = None,
        expect_event: Optional[EventExpectation] = None,
    ) -> TransactionOutcome:
        """Preflight, approve the spender when needed, then run ``call``."""
        if preflight is not None:
            self.check_balance(str(signer.address), preflight)
        approval = self.ensure_allowance(
            signer, token_address=token_address, spender=spender, amount=amount
        )
        try:
            outcome = self.execute(signer, call, expect_event=expect_event)
        except ActionError as exc:
            if approval is not None:
                exc.details["approveTxHash"] = approval.tx_hash
            raise
        outcome.approval = approval
        return outcome
