"""
Flow Registry - explicit per-user mapping of in-flight sale flows

Flows are kept in memory only. They have no timeout: an abandoned flow stays
until the user starts a new one or finishes it.
"""
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from app.core.exceptions import InvalidStateTransitionError
from app.core.logging import get_logger
from app.db.models.transaction import TransactionType
from app.state_machine.attachments import AttachmentCollector
from app.state_machine.states import FlowStep, FLOW_TRANSITIONS

logger = get_logger(__name__)


@dataclass
class Flow:
    """Progress of one user through the sale intake sequence"""

    category: TransactionType
    step: FlowStep = FlowStep.AWAITING_AMOUNT
    amount: Optional[str] = None
    counterparty: Optional[str] = None
    attachments: AttachmentCollector = field(default_factory=AttachmentCollector)


class FlowRegistry:
    """Owns every user's Flow; at most one Flow per user"""

    def __init__(self) -> None:
        self._flows: dict[int, Flow] = {}

    def get(self, user_id: int) -> Optional[Flow]:
        return self._flows.get(user_id)

    def current_step(self, user_id: int) -> Optional[FlowStep]:
        flow = self._flows.get(user_id)
        return flow.step if flow else None

    def start(self, user_id: int, category: TransactionType) -> Flow:
        """Begin a new flow, discarding any flow the user had in progress"""
        previous = self._flows.get(user_id)
        if previous is not None:
            logger.info(
                "Replacing in-progress flow",
                extra_data={
                    "user_id": user_id,
                    "previous_step": previous.step.value,
                    "previous_category": previous.category.value,
                },
            )
        flow = Flow(category=category)
        self._flows[user_id] = flow
        return flow

    def transition_to(self, user_id: int, new_step: FlowStep, **updates) -> Flow:
        """
        Move the user's flow to new_step, applying field updates.

        Raises InvalidStateTransitionError when the move is not in FLOW_TRANSITIONS.
        """
        flow = self._flows.get(user_id)
        current = flow.step if flow else None

        if not self._is_valid_transition(current, new_step) or flow is None:
            logger.warning(
                "Invalid flow transition attempted",
                extra_data={
                    "user_id": user_id,
                    "current_step": current.value if current else None,
                    "target_step": new_step.value,
                },
            )
            raise InvalidStateTransitionError(
                current.value if current else None, new_step.value, user_id
            )

        for key, value in updates.items():
            setattr(flow, key, value)
        flow.step = new_step
        return flow

    def clear(self, user_id: int) -> None:
        self._flows.pop(user_id, None)

    def _is_valid_transition(self, current: Optional[FlowStep], target: FlowStep) -> bool:
        return target in FLOW_TRANSITIONS.get(current, [])

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._flows

    def __len__(self) -> int:
        return len(self._flows)


def get_flow_registry(request: Request) -> FlowRegistry:
    """FastAPI dependency: the registry owned by the running application"""
    return request.app.state.flow_registry
