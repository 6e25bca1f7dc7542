"""
State Handlers - Process sale intake messages based on the current flow step
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.models.transaction import TransactionType
from app.domain.services.transaction_store import TransactionDraft, TransactionStore
from app.state_machine.attachments import Attachment
from app.state_machine.manager import Flow, FlowRegistry
from app.state_machine.responses import MessageResponse
from app.state_machine.states import FlowStep, MAIN_MENU_KEYBOARD

logger = get_logger(__name__)

NOT_SELLING_TEXT = 'You are not in the middle of a sale. Start with "Sell Crypto" or "Sell Giftcard".'
PROOF_INSTRUCTIONS = (
    "Please upload proof image(s).\n"
    "For crypto: upload your payment proof.\n"
    "For giftcards: upload an image of the card AND the receipt (if any).\n"
    "You can send multiple images one after another. When done, send /done."
)
COUNTERPARTY_PROMPTS = {
    TransactionType.CRYPTO: "Which cryptocurrency? (e.g., BTC, USDT)",
    TransactionType.GIFTCARD: "Which gift card? (e.g., iTunes $50, Google Play $25)",
}


@dataclass
class FinishResult:
    response: MessageResponse
    transaction_id: Optional[int] = None


def _amount_prompt(category: TransactionType) -> str:
    return f"You chose to sell: {category.value}\nPlease enter the amount (e.g., $10 or $50):"


class SaleFlowHandler:
    """Drives one user's Flow from intent selection to a stored transaction"""

    def __init__(self, db: AsyncSession, flows: FlowRegistry):
        self.db = db
        self.flows = flows
        self.store = TransactionStore(db)

    def has_active_flow(self, user_id: int) -> bool:
        return user_id in self.flows

    def start_sale(self, user_id: int, category: TransactionType) -> MessageResponse:
        self.flows.start(user_id, category)
        logger.info(
            "Sale flow started",
            extra_data={"user_id": user_id, "category": category.value},
        )
        return MessageResponse(_amount_prompt(category))

    async def handle_text(self, user_id: int, text: str) -> Optional[MessageResponse]:
        """
        Process text for a user with an active flow.

        Returns None when the user has no flow so the caller can route elsewhere.
        """
        flow = self.flows.get(user_id)
        if flow is None:
            return None

        handler = self._get_handler(flow.step)
        response, new_step, updates = await handler(text.strip(), flow, user_id)

        if new_step != flow.step:
            self.flows.transition_to(user_id, new_step, **updates)
        return response

    def _get_handler(self, step: FlowStep):
        handlers = {
            FlowStep.AWAITING_AMOUNT: self._handle_amount,
            FlowStep.AWAITING_COUNTERPARTY: self._handle_counterparty,
            FlowStep.AWAITING_PROOF: self._handle_proof_text,
        }
        return handlers[step]

    async def _handle_amount(
        self, text: str, flow: Flow, user_id: int
    ) -> Tuple[MessageResponse, FlowStep, dict]:
        if not text:
            return MessageResponse(_amount_prompt(flow.category)), flow.step, {}
        response = MessageResponse(COUNTERPARTY_PROMPTS[flow.category])
        return response, FlowStep.AWAITING_COUNTERPARTY, {"amount": text}

    async def _handle_counterparty(
        self, text: str, flow: Flow, user_id: int
    ) -> Tuple[MessageResponse, FlowStep, dict]:
        if not text:
            return MessageResponse(COUNTERPARTY_PROMPTS[flow.category]), flow.step, {}
        return MessageResponse(PROOF_INSTRUCTIONS), FlowStep.AWAITING_PROOF, {"counterparty": text}

    async def _handle_proof_text(
        self, text: str, flow: Flow, user_id: int
    ) -> Tuple[MessageResponse, FlowStep, dict]:
        received = len(flow.attachments)
        reminder = "Please upload proof image(s), or send /done when finished."
        if received:
            reminder = f"{received} image(s) received so far. Send more images or /done when finished."
        return MessageResponse(reminder), flow.step, {}

    def _current_prompt(self, flow: Flow) -> str:
        if flow.step == FlowStep.AWAITING_AMOUNT:
            return _amount_prompt(flow.category)
        if flow.step == FlowStep.AWAITING_COUNTERPARTY:
            return COUNTERPARTY_PROMPTS[flow.category]
        return PROOF_INSTRUCTIONS

    def handle_media(self, user_id: int, attachment: Attachment) -> MessageResponse:
        """Collect an attachment; only accepted at the proof step"""
        flow = self.flows.get(user_id)
        if flow is None:
            return MessageResponse(
                "I received an image but you are not in a selling flow. "
                'Use "Sell Crypto" or "Sell Giftcard" to start.',
                keyboard=MAIN_MENU_KEYBOARD,
            )
        if flow.step != FlowStep.AWAITING_PROOF:
            return MessageResponse(
                f"Image ignored. Please answer the question first.\n{self._current_prompt(flow)}"
            )

        count = flow.attachments.add(attachment)
        logger.debug(
            "Proof attachment collected",
            extra_data={"user_id": user_id, "count": count, "file_type": attachment.file_type},
        )
        return MessageResponse(
            f"Image received ({count}). Send more images or /done when finished."
        )

    def handle_unsupported_media(self, user_id: int) -> MessageResponse:
        """Reply to a file that cannot serve as proof (not a photo or image)"""
        flow = self.flows.get(user_id)
        if flow is None:
            return MessageResponse(
                "Only images can be used as proof, and only during a sale. "
                'Use "Sell Crypto" or "Sell Giftcard" to start.',
                keyboard=MAIN_MENU_KEYBOARD,
            )
        return MessageResponse(
            f"Only images (photos or image files) are accepted.\n{self._current_prompt(flow)}"
        )

    async def finish(self, user_id: int) -> FinishResult:
        """Persist the flow as a pending transaction and discard it"""
        flow = self.flows.get(user_id)
        if flow is None:
            return FinishResult(MessageResponse(NOT_SELLING_TEXT, keyboard=MAIN_MENU_KEYBOARD))
        if flow.step != FlowStep.AWAITING_PROOF:
            return FinishResult(
                MessageResponse(f"You are not at the upload step yet.\n{self._current_prompt(flow)}")
            )
        if flow.attachments.is_empty():
            return FinishResult(
                MessageResponse("Please upload at least one proof image before sending /done.")
            )

        transaction_id = await self.store.create_transaction(
            TransactionDraft(
                user_id=user_id,
                category=flow.category,
                amount=flow.amount or "",
                counterparty=flow.counterparty or "",
                attachments=list(flow.attachments),
            )
        )
        self.flows.clear(user_id)

        return FinishResult(
            MessageResponse(
                f"Your submission (ID: {transaction_id}) is pending admin approval. "
                "You will be prompted for account details if approved. Thank you!",
                keyboard=MAIN_MENU_KEYBOARD,
            ),
            transaction_id=transaction_id,
        )
