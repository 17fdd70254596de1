"""
Visual Light Router: Model Selection and Fallback Routing

Picks a generative-AI model for a task (modality, budget, privacy,
context length, quality and speed preferences), calls it through a
uniform provider adapter, and falls back through ranked alternates
when a backend fails, while tracking per-model cost and reliability.
"""

__version__ = "0.1.0"
