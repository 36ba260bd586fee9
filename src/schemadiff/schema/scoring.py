"""Score aggregation for classified change sequences."""

from collections import Counter
from collections.abc import Iterable

from schemadiff.config import ScoringConfig
from schemadiff.schema.models import Change, ChangeKind, Severity


class ScoreAggregator:
    """Reduces classified changes to a 0-100 score and a compatibility verdict.

    Every Breaking change of a kind costs ``breaking_penalty * breaking_decay**n``
    where ``n`` counts earlier Breaking changes of the same kind, so one large
    schema rewrite does not drive the score straight to zero. Warnings and
    informational changes cost a flat penalty each.
    """

    def __init__(self, config: ScoringConfig | None = None, threshold: int | None = None):
        """Initialize aggregator.

        Args:
            config: Penalty weights (defaults apply when omitted)
            threshold: Minimum score for a compatible verdict (config default when omitted)
        """
        self.config = config or ScoringConfig()
        self.threshold = self.config.default_threshold if threshold is None else threshold

    def score(self, changes: Iterable[Change]) -> int:
        """Compute the clamped compatibility score.

        Raises:
            ValueError: If a change has not been classified
        """
        penalty = 0.0
        breaking_seen: Counter[ChangeKind] = Counter()

        for change in changes:
            if change.severity is None:
                raise ValueError(f"Cannot score unclassified change at {change.path}")

            if change.severity is Severity.BREAKING:
                repeat = breaking_seen[change.kind]
                penalty += self.config.breaking_penalty * self.config.breaking_decay**repeat
                breaking_seen[change.kind] += 1
            elif change.severity is Severity.WARNING:
                penalty += self.config.warning_penalty
            else:
                penalty += self.config.info_penalty

        return max(0, min(100, round(100 - penalty)))

    def is_compatible(self, changes: Iterable[Change], score: int) -> bool:
        """Compatible only when the score clears the threshold and nothing breaks."""
        if score < self.threshold:
            return False
        return not any(change.severity is Severity.BREAKING for change in changes)

    def aggregate(self, changes: Iterable[Change]) -> tuple[int, bool]:
        """Score and verdict in one call.

        Returns:
            Tuple of (score, is_compatible)
        """
        changes = list(changes)
        score = self.score(changes)
        return score, self.is_compatible(changes, score)
