"""
State Definitions for the Sale Intake Flow
"""
from enum import Enum
from typing import Optional

from app.db.models.transaction import TransactionType


class FlowStep(str, Enum):
    """Steps of the sale intake flow; no Flow at all means no active flow"""

    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_COUNTERPARTY = "awaiting_counterparty"
    AWAITING_PROOF = "awaiting_proof"


# None stands for "no active flow". Leaving AWAITING_PROOF happens only by
# creating the transaction and discarding the Flow.
FLOW_TRANSITIONS: dict[Optional[FlowStep], list[FlowStep]] = {
    None: [FlowStep.AWAITING_AMOUNT],
    FlowStep.AWAITING_AMOUNT: [FlowStep.AWAITING_COUNTERPARTY],
    FlowStep.AWAITING_COUNTERPARTY: [FlowStep.AWAITING_PROOF],
    FlowStep.AWAITING_PROOF: [],
}


# Reply keyboard labels and commands
BTN_SELL_CRYPTO = "Sell Crypto"
BTN_SELL_GIFTCARD = "Sell Giftcard"
BTN_MY_ACCOUNT = "My Account"

CMD_START = "/start"
CMD_HELP = "/help"
CMD_DONE = "/done"
CMD_BROADCAST = "/broadcast"

MAIN_MENU_KEYBOARD = [[BTN_SELL_CRYPTO, BTN_SELL_GIFTCARD], [BTN_MY_ACCOUNT]]

_INTENTS = {
    BTN_SELL_CRYPTO.lower(): TransactionType.CRYPTO,
    BTN_SELL_GIFTCARD.lower(): TransactionType.GIFTCARD,
}


def match_intent(text: str) -> TransactionType | None:
    """'Sell Crypto' / 'Sell Giftcard' (any case) -> category"""
    return _INTENTS.get(text.strip().lower())


def match_command(text: str, command: str) -> bool:
    """True for '/done', '/done@MyBot' and '/done args'"""
    first = text.strip().split(maxsplit=1)[0] if text.strip() else ""
    return first.split("@", 1)[0].lower() == command
