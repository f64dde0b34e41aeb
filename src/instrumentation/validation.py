# Injector/src/instrumentation/validation.py
# @ai-rules:
# 1. [Pattern]: Target names are stripped and blanks dropped before counting.
# 2. [Constraint]: Raise before any mutation; a rejected pod is never partially patched.
"""Validation of how instrumentations are assigned to a pod's containers."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Sequence

from ..models import Instrumentation
from .errors import DuplicateTargetError, InstrumentationConfigError

logger = logging.getLogger(__name__)


def split_targets(targets: str) -> list[str]:
    """Split a comma-joined target list, dropping blanks."""
    return [name.strip() for name in targets.split(",") if name.strip()]


def validate_no_duplicate_targets(target_lists: Iterable[str]) -> None:
    """
    Reject a container named by more than one target list.

    Empty lists mean "all containers" and never count as duplicates.

    Raises:
        DuplicateTargetError: listing every repeated name, sorted
    """
    counts = Counter(split_targets(",".join(target_lists)))
    duplicates = [name for name, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateTargetError(duplicates)


def validate_target_assignment(instrumentations: Sequence[Instrumentation]) -> None:
    """
    Check that instrumentations on one pod target disjoint containers.

    At most one runtime may omit its target list, and only when it is the
    only runtime on the pod: "all containers" overlaps every named target.
    """
    with_targets = sum(1 for inst in instrumentations if split_targets(inst.spec.containers))
    without_targets = len(instrumentations) - with_targets

    if without_targets > 1 or (without_targets and with_targets):
        logger.warning(
            f"Ambiguous instrumentation targets: {with_targets} with container names, "
            f"{without_targets} without"
        )
        raise InstrumentationConfigError(
            "incorrect instrumentation configuration - please provide container names "
            "for all instrumentations"
        )

    validate_no_duplicate_targets(inst.spec.containers for inst in instrumentations)
