"""
Claims Kernel

The approval core of the lecturer claim system:
- Two-stage review workflow (programme coordinator, then academic manager)
- Role-to-stage permission gating
- Rule-based validation with risk scoring
- Submission, supporting-document metadata and HR reporting reads
"""

__version__ = "0.1.0"
