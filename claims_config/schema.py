"""
Claims policy configuration schema.

The runtime artifact produced from the YAML policy file.  The threshold and
document-rule types are the kernel's own frozen dataclasses, so a loaded
policy can be handed straight to ``ValidationEngine`` and
``DocumentService``.
"""

from __future__ import annotations

from dataclasses import dataclass

from claims_kernel.domain.claim import DocumentRules
from claims_kernel.domain.validation import ValidationThresholds


@dataclass(frozen=True)
class ClaimsPolicyConfig:
    """A parsed, checksummed claims policy."""

    config_id: str
    version: int
    thresholds: ValidationThresholds
    documents: DocumentRules
    checksum: str
    description: str = ""
