"""Custom per-activity assignment services."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol

from .models import AssignmentContext, CustomAssignmentDecision

logger = logging.getLogger(__name__)


class CustomAssignmentService(Protocol):
    """Service consulted before any static assignment configuration."""

    async def decide(self, context: AssignmentContext) -> CustomAssignmentDecision:
        """Return a decision, or a declined decision to fall through."""


# Loan thresholds
CRITICAL_VALUE_THRESHOLD = 5_000_000
HIGH_VALUE_THRESHOLD = 1_000_000
MEDIUM_VALUE_THRESHOLD = 500_000
LOW_CREDIT_SCORE = 600


def _first_value(variables: Dict[str, Any], keys: Iterable[str]) -> Optional[Any]:
    for key in keys:
        value = variables.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class BusinessRulesAssignmentService:
    """Routes loan cases by amount, risk, property type and credit score.

    Rules are applied in priority order; the first match wins.
    """

    async def decide(self, context: AssignmentContext) -> CustomAssignmentDecision:
        variables = context.variables
        amount = _as_float(
            _first_value(variables, ("loanAmount", "loan_amount", "amount", "requestedAmount"))
        )
        risk = str(_first_value(variables, ("riskLevel", "risk_level", "riskAssessment")) or "")
        property_type = str(_first_value(variables, ("propertyType", "property_type")) or "")
        credit_score = int(_as_float(_first_value(variables, ("creditScore", "credit_score"))))
        refinancing = str(variables.get("isRefinancing", "")).lower() in ("true", "1", "yes")

        logger.debug(
            f"Business rule inputs for {context.activity_id}: amount={amount}, risk={risk}, "
            f"property={property_type}, credit={credit_score}"
        )

        if amount >= CRITICAL_VALUE_THRESHOLD:
            return CustomAssignmentDecision(
                use_custom_assignment=True,
                group="EXECUTIVE_COMMITTEE",
                strategies=["Manual", "Supervisor"],
                reason=f"Critical value loan {amount:,.0f} requires executive committee review",
                metadata={"LoanAmount": amount, "EscalationLevel": "Executive"},
            )
        if amount >= HIGH_VALUE_THRESHOLD and risk.lower() == "high":
            return CustomAssignmentDecision(
                use_custom_assignment=True,
                group="SENIOR_REVIEW_COMMITTEE",
                strategies=["Supervisor", "WorkloadBased"],
                reason=f"High-value ({amount:,.0f}) high-risk loan requires senior expertise",
                metadata={"LoanAmount": amount, "RiskLevel": risk},
            )
        if property_type.lower() == "commercial" and amount >= MEDIUM_VALUE_THRESHOLD:
            return CustomAssignmentDecision(
                use_custom_assignment=True,
                group="COMMERCIAL_LENDING_TEAM",
                strategies=["RoundRobin"],
                reason="Commercial property loan requires commercial lending expertise",
                metadata={"PropertyType": property_type, "LoanAmount": amount},
            )
        if 0 < credit_score < LOW_CREDIT_SCORE:
            return CustomAssignmentDecision(
                use_custom_assignment=True,
                strategies=["Manual", "Supervisor"],
                reason=f"Low credit score ({credit_score}) requires manual underwriting review",
                metadata={"CreditScore": credit_score},
            )
        if refinancing and amount >= MEDIUM_VALUE_THRESHOLD:
            return CustomAssignmentDecision(
                use_custom_assignment=True,
                strategies=["WorkloadBased", "RoundRobin"],
                reason="High-value refinancing gets priority processing",
                metadata={"IsRefinancing": True, "LoanAmount": amount},
            )
        return CustomAssignmentDecision.decline("No specific business rules apply to this case")
