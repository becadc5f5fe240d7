"""Stochastic gate for replying to passive messages."""

import math
import secrets

_random = secrets.SystemRandom()


class ReplyProbabilityGate:
    """Samples whether a message should get a reply.

    Draws come from the OS CSPRNG so the reply cadence can't be predicted.
    """

    def hit(self, probability: float) -> bool:
        if math.isnan(probability):
            return False
        probability = min(1.0, max(0.0, probability))
        # random() is in [0, 1), so 1.0 always hits and 0.0 never does
        return _random.random() < probability
