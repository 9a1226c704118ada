"""Feature matching between a score matrix and the reference dataset.

Three outcomes, decided once per run:

- full: every reference feature was scored; the fixed model is used.
- partial: at least ``MIN_MATCHED_FEATURES`` were scored; the model is
  retrained on that subset and a :class:`PartialFeatureWarning` is issued.
- insufficient: fewer were scored; :class:`InsufficientFeaturesError`.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .errors import InsufficientFeaturesError, PartialFeatureWarning

logger = logging.getLogger(__name__)

MIN_MATCHED_FEATURES = 8

FULL = "full"
PARTIAL = "partial"


@dataclass(frozen=True)
class FeatureMatch:
    """Result of matching reference features against scored gene sets."""

    policy: str  # "full" | "partial"
    features: List[str]  # matched, in reference order
    missing: List[str] = field(default_factory=list)

    @property
    def required(self) -> int:
        return len(self.features) + len(self.missing)

    @property
    def needs_tuning(self) -> bool:
        return self.policy == PARTIAL


def match_features(available: Iterable[str], required: Sequence[str]) -> FeatureMatch:
    """
    Decide which reference features can be used.

    Args:
        available: Gene-set identifiers present in the score matrix
        required: Reference feature columns, in training order

    Returns:
        FeatureMatch with the chosen policy

    Raises:
        InsufficientFeaturesError: If fewer than ``MIN_MATCHED_FEATURES``
            reference features are available
    """
    present = set(available)
    matched = [f for f in required if f in present]
    missing = [f for f in required if f not in present]

    if not missing:
        logger.info(f"[SUCCESS] All {len(required)} required features detected")
        return FeatureMatch(policy=FULL, features=matched)

    if len(matched) >= MIN_MATCHED_FEATURES:
        warning = PartialFeatureWarning(len(matched), len(required), missing)
        logger.warning(str(warning))
        warnings.warn(warning, stacklevel=2)
        return FeatureMatch(policy=PARTIAL, features=matched, missing=missing)

    raise InsufficientFeaturesError(
        matched=len(matched),
        required=len(required),
        minimum=MIN_MATCHED_FEATURES,
        missing=missing,
    )
