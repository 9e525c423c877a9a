from __future__ import annotations

from dataclasses import dataclass

from adaptive_ids.models.events import Action, AnalysisResult

HIGH_CONFIDENCE = 0.7
MONITOR_CONFIDENCE = 0.3


@dataclass(frozen=True, slots=True)
class RewardOutcome:
    reward: float
    raise_alert: bool = False
    false_positive: bool = False
    false_negative: bool = False


def score_action(action: Action, result: AnalysisResult) -> RewardOutcome:
    """Reward for taking ``action`` against a classification.

    Only Block and Monitor taken against a positive classification raise an
    alert. Confidence of a negative classification is not consulted.
    """
    attack = result.attack_detected
    confidence = result.confidence

    if action is Action.BLOCK:
        if attack and confidence > HIGH_CONFIDENCE:
            return RewardOutcome(1.0, raise_alert=True)
        if attack:
            return RewardOutcome(0.5, raise_alert=True)
        return RewardOutcome(-1.0, false_positive=True)

    if action is Action.MONITOR:
        if attack and confidence > MONITOR_CONFIDENCE:
            return RewardOutcome(0.3, raise_alert=True)
        if not attack:
            return RewardOutcome(0.1)
        return RewardOutcome(-0.5, false_negative=True)

    if attack:
        return RewardOutcome(-1.0, false_negative=True)
    return RewardOutcome(0.2)
