"""
Domain Services
"""
from app.domain.services.transaction_store import TransactionStore, TransactionDraft
from app.domain.services.admin_notification_service import AdminNotificationService
from app.domain.services.approval_service import TransactionApprovalService, ApprovalResult
from app.domain.services.reconciliation_service import PostApprovalReconciler, ReconcileOutcome
from app.domain.services.broadcast_service import BroadcastService
from app.domain.services.telegram_gateway import TelegramGateway, TelegramBotGateway

__all__ = [
    "TransactionStore",
    "TransactionDraft",
    "AdminNotificationService",
    "TransactionApprovalService",
    "ApprovalResult",
    "PostApprovalReconciler",
    "ReconcileOutcome",
    "BroadcastService",
    "TelegramGateway",
    "TelegramBotGateway",
]
