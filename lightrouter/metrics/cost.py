"""
Cost Estimator for Generation Attempts

Estimates what a successful attempt cost, from the descriptor's
cost_per_unit and the size of the exchange.

cost_per_unit is an opaque per-descriptor scalar: per 1K tokens for text
models and per generation for image, video and audio models. No
conversion between the two units is attempted.
"""

import math

from lightrouter.registry.models import Modality, ModelDescriptor

# Rough English average; backends that report usage are not required to.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Approximate token count of a string."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class CostEstimator:
    """
    Estimate the cost of one generation.

    The estimator is stateless and thread-safe.

    Example:
        estimator = CostEstimator()
        cost = estimator.estimate(descriptor, prompt, result)
    """

    def estimate(self, descriptor: ModelDescriptor, prompt: str, result: str | None) -> float:
        """
        Calculate the estimated cost of an attempt.

        Args:
            descriptor: Model that served the attempt
            prompt: Prompt sent to the model
            result: Output returned (None for failed attempts)

        Returns:
            Estimated cost; 0.0 for local or unpriced models
        """
        if descriptor.is_local or descriptor.cost_per_unit is None:
            return 0.0

        if descriptor.modality == Modality.TEXT:
            tokens = estimate_tokens(prompt) + estimate_tokens(result)
            return (tokens / 1000) * descriptor.cost_per_unit

        return descriptor.cost_per_unit if result is not None else 0.0
