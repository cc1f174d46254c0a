# deployment_engine/diagnosis/classifier.py
"""Deterministic error classification over a fixed pattern table."""

from typing import Optional, Tuple

from deployment_engine.diagnosis.models import ErrorPattern, ErrorSeverity, ErrorType


# Checked in order, first match wins
ERROR_PATTERNS: Tuple[ErrorPattern, ...] = (
    ErrorPattern(
        signature="Host key verification failed",
        type=ErrorType.SSH_CONNECTION_FAILURE,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "SSH key mismatch",
            "Known hosts conflict",
            "Server rebuild without key update",
        ),
    ),
    ErrorPattern(
        signature="Could not get lock /var/lib/dpkg/lock-frontend",
        type=ErrorType.PACKAGE_MANAGER_CONFLICT,
        severity=ErrorSeverity.MEDIUM,
        common_causes=(
            "Unattended-upgrades running",
            "Multiple APT processes",
            "Previous apt process crashed",
        ),
    ),
    ErrorPattern(
        signature="nginx: configuration file /etc/nginx/nginx.conf test failed",
        type=ErrorType.SERVICE_CONFIGURATION_ERROR,
        severity=ErrorSeverity.MEDIUM,
        common_causes=(
            "Invalid nginx config",
            "Missing upstream server",
            "Port conflicts",
        ),
    ),
    ErrorPattern(
        signature="cloud-init status: error",
        type=ErrorType.CLOUD_INIT_TIMING_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Service dependencies not ready",
            "Package installation timeout",
            "Network not available",
        ),
    ),
    ErrorPattern(
        signature="Failed to provision infrastructure",
        type=ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Provider rejected the provisioning request",
            "Requested size not available in region",
            "Invalid provisioning parameters",
        ),
    ),
    ErrorPattern(
        signature="droplet limit",
        type=ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Account resource limit exceeded",
            "Unused servers still allocated",
        ),
    ),
    ErrorPattern(
        signature="SSL certificate problem",
        type=ErrorType.SSL_CERTIFICATE_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Certificate chain incomplete",
            "Certificate issued for another hostname",
        ),
    ),
    ErrorPattern(
        signature="certificate has expired",
        type=ErrorType.SSL_CERTIFICATE_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Certificate renewal did not run",
        ),
    ),
    ErrorPattern(
        signature="Network is unreachable",
        type=ErrorType.NETWORK_CONNECTIVITY_ERROR,
        severity=ErrorSeverity.HIGH,
        common_causes=(
            "Firewall blocking outbound traffic",
            "Server network not yet configured",
        ),
    ),
    ErrorPattern(
        signature="Could not resolve dependencies",
        type=ErrorType.DEPENDENCY_RESOLUTION_ERROR,
        severity=ErrorSeverity.MEDIUM,
        common_causes=(
            "Conflicting package versions",
            "Package registry unavailable",
        ),
    ),
    ErrorPattern(
        signature="ERESOLVE",
        type=ErrorType.DEPENDENCY_RESOLUTION_ERROR,
        severity=ErrorSeverity.MEDIUM,
        common_causes=(
            "Conflicting peer dependencies",
        ),
    ),
)


DEFAULT_CLASSIFICATION = (ErrorType.APPLICATION_RUNTIME_ERROR, ErrorSeverity.MEDIUM)


def find_matching_pattern(message: str) -> Optional[ErrorPattern]:
    """Return the first pattern whose signature occurs in the message."""
    for pattern in ERROR_PATTERNS:
        if pattern.signature in message:
            return pattern
    return None


def classify_error(message: str) -> Tuple[ErrorType, ErrorSeverity]:
    """
    Map a raw failure message to (type, severity).

    Pure: identical text always yields the identical result.
    """
    pattern = find_matching_pattern(message)
    if pattern:
        return pattern.type, pattern.severity

    lowered = message.lower()
    if "ssh" in lowered:
        return ErrorType.SSH_CONNECTION_FAILURE, ErrorSeverity.HIGH
    if "apt" in lowered or "dpkg" in lowered:
        return ErrorType.PACKAGE_MANAGER_CONFLICT, ErrorSeverity.MEDIUM
    if "nginx" in lowered:
        return ErrorType.SERVICE_CONFIGURATION_ERROR, ErrorSeverity.MEDIUM
    if "dns" in lowered:
        return ErrorType.DNS_PROPAGATION_ERROR, ErrorSeverity.MEDIUM

    return DEFAULT_CLASSIFICATION
