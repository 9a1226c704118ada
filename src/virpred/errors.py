"""Error and warning types raised by the VirPred pipeline.

Every fatal condition is a subclass of :class:`VirPredError`, so callers
can catch the whole family at once. Partial feature coverage is not fatal
and is reported as a :class:`PartialFeatureWarning`.
"""

from typing import List, Sequence


class VirPredError(Exception):
    """Base class for fatal pipeline errors."""

    kind = "VirPredError"


class InputFormatError(VirPredError):
    """The expression file is missing, malformed or empty."""

    kind = "InputFormatError"


class ReferenceFetchError(VirPredError):
    """The gene-set collection could not be retrieved or was empty."""

    kind = "ReferenceFetchError"


class ScoringError(VirPredError):
    """Enrichment scoring failed."""

    kind = "ScoringError"


class InsufficientFeaturesError(VirPredError):
    """Too few reference features were found in the score matrix."""

    kind = "InsufficientFeaturesError"

    def __init__(self, matched: int, required: int, minimum: int, missing: Sequence[str]):
        self.matched = matched
        self.required = required
        self.minimum = minimum
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Insufficient features ({matched}/{required} available, "
            f"minimum {minimum} required). "
            f"Missing features ({len(self.missing)}): {', '.join(self.missing)}"
        )


class TrainingError(VirPredError):
    """The classifier could not be fitted on the reference dataset."""

    kind = "TrainingError"


class PredictionError(VirPredError):
    """Applying the classifier to the scored samples failed."""

    kind = "PredictionError"


class OutputWriteError(VirPredError):
    """The prediction report could not be written."""

    kind = "OutputWriteError"


class PartialFeatureWarning(UserWarning):
    """Only part of the reference feature set is available."""

    def __init__(self, matched: int, required: int, missing: Sequence[str]):
        self.matched = matched
        self.required = required
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Only {matched}/{required} features available. "
            f"Prediction reliability reduced. "
            f"Missing features: {', '.join(self.missing)}"
        )
