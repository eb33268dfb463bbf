"""
Configuration Loader (``claims_config.loader``).

Responsibility
--------------
Loads the claims policy YAML file and parses it into the typed dataclasses
in ``claims_config.schema``.  Callers use ``claims_config.get_active_config()``
rather than this module.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Money and hour limits are parsed as ``Decimal`` from their string form,
  never through ``float``.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  form of the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range or non-numeric values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from claims_config.schema import ClaimsPolicyConfig
from claims_kernel.domain.claim import DocumentRules
from claims_kernel.domain.validation import ValidationThresholds


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a non-negative decimal from a YAML string or number."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: expected a decimal, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a decimal, got {value!r}") from exc
    if not result.is_finite() or result < 0:
        raise ValueError(f"{field_name}: must be a non-negative decimal, got {value!r}")
    return result


def parse_count(value: Any, field_name: str) -> int:
    """Parse a non-negative integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name}: expected an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{field_name}: must not be negative, got {value!r}")
    return value


def parse_thresholds(data: dict[str, Any]) -> ValidationThresholds:
    """
    Parse the ``validation`` section.

    Raises:
        KeyError: if a required key is missing.
        ValueError: if a value is malformed or the limits are inconsistent.
    """
    hours = data["hours"]
    rate = data["rate"]
    risk = data["risk"]
    actions = data["actions"]

    thresholds = ValidationThresholds(
        min_hours=parse_decimal(hours["minimum"], "hours.minimum"),
        max_hours=parse_decimal(hours["maximum"], "hours.maximum"),
        high_hours=parse_decimal(hours["high"], "hours.high"),
        min_rate=parse_decimal(rate["minimum"], "rate.minimum"),
        max_rate=parse_decimal(rate["maximum"], "rate.maximum"),
        high_amount=parse_decimal(data["high_amount"], "high_amount"),
        required_documents=parse_count(data["required_documents"], "required_documents"),
        stale_after_months=parse_count(data["stale_after_months"], "stale_after_months"),
        rate_mismatch_risk=parse_count(risk["rate_mismatch"], "risk.rate_mismatch"),
        high_hours_risk=parse_count(risk["high_hours"], "risk.high_hours"),
        high_amount_risk=parse_count(risk["high_amount"], "risk.high_amount"),
        missing_documents_risk=parse_count(
            risk["missing_documents"], "risk.missing_documents"
        ),
        duplicate_period_risk=parse_count(
            risk["duplicate_period"], "risk.duplicate_period"
        ),
        stale_period_risk=parse_count(risk["stale_period"], "risk.stale_period"),
        manual_review_at=parse_count(
            actions["manual_review_at"], "actions.manual_review_at"
        ),
        caution_at=parse_count(actions["caution_at"], "actions.caution_at"),
        auto_approve_below=parse_count(
            actions["auto_approve_below"], "actions.auto_approve_below"
        ),
    )

    if thresholds.min_hours > thresholds.max_hours:
        raise ValueError("hours.minimum must not exceed hours.maximum")
    if thresholds.min_rate > thresholds.max_rate:
        raise ValueError("rate.minimum must not exceed rate.maximum")
    if thresholds.caution_at > thresholds.manual_review_at:
        raise ValueError("actions.caution_at must not exceed actions.manual_review_at")
    return thresholds


def parse_document_rules(data: dict[str, Any]) -> DocumentRules:
    """
    Parse the ``documents`` section.

    Extensions are normalized to lower case and must start with a dot.
    """
    max_file_size = parse_count(data["max_file_size"], "documents.max_file_size")
    if max_file_size == 0:
        raise ValueError("documents.max_file_size must be positive")

    raw_extensions = data["allowed_extensions"]
    if not isinstance(raw_extensions, list) or not raw_extensions:
        raise ValueError("documents.allowed_extensions must be a non-empty list")

    extensions = set()
    for ext in raw_extensions:
        if not isinstance(ext, str) or not ext.startswith(".") or len(ext) < 2:
            raise ValueError(f"documents.allowed_extensions: invalid extension {ext!r}")
        extensions.add(ext.lower())

    return DocumentRules(
        max_file_size=max_file_size,
        allowed_extensions=frozenset(extensions),
    )


def parse_policy(data: dict[str, Any]) -> ClaimsPolicyConfig:
    """Parse a complete policy document."""
    return ClaimsPolicyConfig(
        config_id=data["config_id"],
        version=parse_count(data["version"], "version"),
        thresholds=parse_thresholds(data["validation"]),
        documents=parse_document_rules(data["documents"]),
        checksum=compute_checksum(data),
        description=data.get("description", ""),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
