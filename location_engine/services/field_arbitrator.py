"""
Field Arbitrator.

Decides whether a newly observed value may overwrite the current value of a
single location field.

CRITICAL: With preserve_manual_input enabled, a manually entered value can
ONLY be replaced by another manual edit. This deliberately overrides the
numeric priority ordering.
"""

from typing import Optional

from location_engine.models.source import LocationSource


def should_accept(
    existing_source: Optional[LocationSource],
    candidate_source: LocationSource,
    preserve_manual_input: bool,
) -> bool:
    """
    Decide whether a candidate value wins over the field's current value.

    Rules, in order:
    1. No existing source -> accept.
    2. preserve_manual_input and existing is manual -> accept only manual.
    3. Otherwise accept iff candidate priority >= existing priority
       (ties go to the newer observation).

    Args:
        existing_source: Source that last wrote the field, or None
        candidate_source: Source of the new value
        preserve_manual_input: Session policy flag

    Returns:
        True if the candidate value should be committed
    """
    if existing_source is None:
        return True

    if preserve_manual_input and existing_source.is_manual:
        return candidate_source.is_manual

    return candidate_source.priority >= existing_source.priority
