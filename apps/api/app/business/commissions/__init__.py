from app.business.commissions.api import router
from app.business.commissions.ledger import ApprovalLedgerService, approval_ledger_service
from app.business.commissions.models import CommissionApproval
from app.business.commissions.proration import ProrationResult, calculate_prorated_reward
from app.business.commissions.schemas import (
    CommissionApprovalRead,
    CommissionLineRead,
    CommissionMonthSummary,
    ProrationRead,
)
from app.business.commissions.service import CommissionService, commission_service

__all__ = [
    "router",
    "CommissionApproval",
    "CommissionApprovalRead",
    "CommissionLineRead",
    "CommissionMonthSummary",
    "ProrationRead",
    "ProrationResult",
    "calculate_prorated_reward",
    "ApprovalLedgerService",
    "approval_ledger_service",
    "CommissionService",
    "commission_service",
]
