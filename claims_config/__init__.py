"""
claims_config -- single public entrypoint for claims policy configuration.

Responsibility:
    Provides the ONLY way to obtain the claims policy at runtime through
    ``get_active_config()``.  Returns a ``ClaimsPolicyConfig`` whose
    thresholds and document rules plug directly into ``ValidationEngine``
    and ``DocumentService``.

Architecture position:
    Configuration.  This package sits above ``claims_kernel``; the kernel
    MUST NEVER import from ``claims_config``.  Kernel defaults equal the
    shipped YAML defaults, so the kernel also works without configuration.

Failure modes:
    - ``FileNotFoundError`` -- the policy file does not exist.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- a value is malformed or limits are inconsistent.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CLAIMS_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each verification run to the policy that governed it.
"""

from __future__ import annotations

from pathlib import Path

from claims_config.loader import load_yaml_file, parse_policy
from claims_config.schema import ClaimsPolicyConfig
from claims_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "defaults" / "claims_policy.yaml"

__all__ = ["ClaimsPolicyConfig", "DEFAULT_POLICY_PATH", "get_active_config"]


def get_active_config(config_path: Path | None = None) -> ClaimsPolicyConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a policy YAML file.  Defaults to
            claims_config/defaults/claims_policy.yaml.

    Returns:
        ClaimsPolicyConfig -- parsed, validated and checksummed.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value is malformed.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_POLICY_PATH
    config = parse_policy(load_yaml_file(path))

    _logger.info(
        "CLAIMS_CONFIG_TRACE",
        extra={
            "trace_type": "CLAIMS_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "allowed_extension_count": len(config.documents.allowed_extensions),
        },
    )
    return config
