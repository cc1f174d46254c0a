# deployment_engine/diagnosis/diagnoser.py
"""Diagnosers turn a classified error into a root-cause analysis."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from deployment_engine.core.errors import DiagnosisError
from deployment_engine.diagnosis.classifier import find_matching_pattern
from deployment_engine.diagnosis.knowledge import PROVIDER_KNOWLEDGE
from deployment_engine.diagnosis.models import (
    AIErrorAnalysis,
    DeploymentError,
    ErrorSeverity,
    ErrorType,
    RecoveryAction,
    RiskAssessment,
    RiskLevel,
)

logger = logging.getLogger(__name__)


# Minutes
ESTIMATED_REPAIR_MINUTES: Dict[ErrorType, float] = {
    ErrorType.SSH_CONNECTION_FAILURE: 5,
    ErrorType.PACKAGE_MANAGER_CONFLICT: 3,
    ErrorType.SERVICE_CONFIGURATION_ERROR: 10,
    ErrorType.NETWORK_CONNECTIVITY_ERROR: 15,
    ErrorType.DEPENDENCY_RESOLUTION_ERROR: 20,
    ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR: 30,
    ErrorType.APPLICATION_RUNTIME_ERROR: 25,
    ErrorType.DNS_PROPAGATION_ERROR: 60,
    ErrorType.SSL_CERTIFICATE_ERROR: 15,
    ErrorType.CLOUD_INIT_TIMING_ERROR: 45,
}


def estimated_repair_minutes(error_type: ErrorType) -> float:
    return ESTIMATED_REPAIR_MINUTES.get(error_type, 30)


def standard_recovery_actions(error_type: ErrorType) -> List[RecoveryAction]:
    """Well-known remediation commands per error type."""
    if error_type == ErrorType.SSH_CONNECTION_FAILURE:
        return [RecoveryAction(
            description="Refresh SSH keys",
            command="ssh-keygen -R {host} && ssh-keyscan {host} >> ~/.ssh/known_hosts",
            expected_result="SSH connection should work",
            timeout_seconds=30,
        )]
    if error_type == ErrorType.PACKAGE_MANAGER_CONFLICT:
        return [RecoveryAction(
            description="Clear APT locks",
            command="sudo killall apt apt-get dpkg; sudo rm -f /var/lib/dpkg/lock-frontend /var/lib/dpkg/lock",
            expected_result="APT should be available",
            timeout_seconds=60,
        )]
    if error_type == ErrorType.SERVICE_CONFIGURATION_ERROR:
        return [RecoveryAction(
            description="Restart services",
            command="sudo systemctl restart nginx app.service",
            expected_result="Services should be running",
            timeout_seconds=30,
        )]
    if error_type == ErrorType.CLOUD_INIT_TIMING_ERROR:
        return [RecoveryAction(
            description="Wait for cloud-init to finish",
            command="cloud-init status --wait",
            expected_result="cloud-init reports done",
            timeout_seconds=300,
        )]
    return []


class Diagnoser(ABC):
    """Produces an analysis for a classified error."""

    @abstractmethod
    def diagnose(self, error: DeploymentError) -> AIErrorAnalysis:
        raise NotImplementedError


class RuleBasedDiagnoser(Diagnoser):
    """Analysis derived only from the pattern table and fixed tables."""

    def __init__(
        self,
        downtime_hourly_cost: float = 0.10,
        replacement_server_monthly_cost: float = 24.0,
    ):
        self.downtime_hourly_cost = downtime_hourly_cost
        self.replacement_server_monthly_cost = replacement_server_monthly_cost

    def diagnose(self, error: DeploymentError) -> AIErrorAnalysis:
        pattern = find_matching_pattern(error.message)

        return AIErrorAnalysis(
            root_cause=pattern.common_causes[0] if pattern else "Unknown deployment issue",
            confidence=0.7 if pattern else 0.3,
            reasoning="Fallback analysis based on error patterns",
            recommended_actions=standard_recovery_actions(error.type),
            estimated_repair_minutes=estimated_repair_minutes(error.type),
            risk_assessment=RiskAssessment(
                data_loss_risk=RiskLevel.LOW,
                downtime_risk=(
                    RiskLevel.HIGH if error.severity == ErrorSeverity.CRITICAL
                    else RiskLevel.MEDIUM
                ),
                cost_impact=self.cost_impact(error.type),
            ),
            source="rule_based",
        )

    def cost_impact(self, error_type: ErrorType) -> float:
        """Downtime cost over the repair window, plus a new server for provisioning errors."""
        repair_hours = estimated_repair_minutes(error_type) / 60
        cost = self.downtime_hourly_cost * repair_hours
        if error_type == ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR:
            cost += self.replacement_server_monthly_cost
        return cost


# -------------------------
# AI RESPONSE SCHEMA
# -------------------------

class ActionPayload(BaseModel):
    description: str
    command: str = ""
    expectedResult: str = ""
    timeout: float = 30.0
    retryable: bool = True
    prerequisite: Optional[str] = None


class RiskPayload(BaseModel):
    dataLossRisk: RiskLevel = RiskLevel.LOW
    downtimeRisk: RiskLevel = RiskLevel.MEDIUM
    costImpact: float = 0.0


class AnalysisPayload(BaseModel):
    rootCause: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    recommendedActions: List[Union[ActionPayload, str]] = Field(default_factory=list)
    estimatedRepairTime: float = Field(default=30.0, ge=0.0)
    riskAssessment: RiskPayload = Field(default_factory=RiskPayload)


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_analysis(response_text: str) -> AIErrorAnalysis:
    """
    Extract and validate the JSON analysis from a reasoning response.

    Raises:
        DiagnosisError: no JSON object, invalid JSON, or wrong shape
    """
    match = _JSON_OBJECT.search(response_text or "")
    if not match:
        raise DiagnosisError("No JSON object in reasoning response")

    try:
        payload = AnalysisPayload.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise DiagnosisError(f"Unparsable reasoning response: {e}") from e

    actions = []
    for item in payload.recommendedActions:
        if isinstance(item, str):
            actions.append(RecoveryAction(description=item))
        else:
            actions.append(RecoveryAction(
                description=item.description,
                command=item.command,
                expected_result=item.expectedResult,
                timeout_seconds=item.timeout,
                retryable=item.retryable,
                prerequisite=item.prerequisite,
            ))

    return AIErrorAnalysis(
        root_cause=payload.rootCause,
        confidence=payload.confidence,
        reasoning=payload.reasoning,
        recommended_actions=actions,
        estimated_repair_minutes=payload.estimatedRepairTime,
        risk_assessment=RiskAssessment(
            data_loss_risk=payload.riskAssessment.dataLossRisk,
            downtime_risk=payload.riskAssessment.downtimeRisk,
            cost_impact=payload.riskAssessment.costImpact,
        ),
        source="ai",
    )


def build_analysis_prompt(error: DeploymentError) -> str:
    diagnostics = (
        json.dumps(error.diagnostics.to_dict(), indent=2)
        if error.diagnostics else "No diagnostics available"
    )
    return f"""
You are an expert DevOps engineer analyzing a failed deployment.

DEPLOYMENT ERROR ANALYSIS:
- Error Type: {error.type.value}
- Severity: {error.severity.value}
- Deployment Phase: {error.phase.value}
- Service: {error.service}
- Error Message: {error.message}

CONTEXT:
{json.dumps(error.context, indent=2, default=str)}

SYSTEM DIAGNOSTICS:
{diagnostics}

PROVIDER DOCUMENTATION:
{PROVIDER_KNOWLEDGE}

Analyze this error and provide:
1. Root cause and confidence level (0.0-1.0)
2. Recommended recovery actions (description, command, expectedResult, timeout in seconds, retryable)
3. Estimated repair time in minutes
4. Risk assessment (dataLossRisk, downtimeRisk as low/medium/high, costImpact in USD)

Format response as JSON with the structure:
{{"rootCause", "confidence", "reasoning", "recommendedActions", "estimatedRepairTime", "riskAssessment"}}
""".strip()


class AIDiagnoser(Diagnoser):
    """Asks the reasoning service; degrades to the fallback on any failure."""

    def __init__(self, reasoning_client, fallback: Optional[Diagnoser] = None):
        self._client = reasoning_client
        self._fallback = fallback or RuleBasedDiagnoser()

    def diagnose(self, error: DeploymentError) -> AIErrorAnalysis:
        prompt = build_analysis_prompt(error)

        try:
            response = self._client.diagnose(prompt)
            analysis = parse_analysis(response)
        except DiagnosisError as e:
            logger.warning(f"[diagnosis] {error.id}: {e}, using fallback")
            return self._fallback.diagnose(error)
        except Exception as e:
            logger.warning(
                f"[diagnosis] {error.id}: reasoning call failed ({e}), using fallback"
            )
            return self._fallback.diagnose(error)

        logger.info(
            f"[diagnosis] {error.id}: AI root cause '{analysis.root_cause}' "
            f"(confidence {analysis.confidence:.2f})"
        )
        return analysis
