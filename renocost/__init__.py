"""RenoCost - AI Renovation Estimate Pipeline.

This package turns a structured renovation request into a normalized,
priced cost estimate by orchestrating Gemini model calls and reconciling
the output against an internal regional pricing reference.

Architecture:
- Transport: httpx client with tenacity retry/backoff and cancellation
- Model Orchestrator: prompt + image payloads, cascading model tiers
- Response Normalizer: strict decode with degraded scalar fallback
- Pricing Oracle: static price/labor tables, zip regions, TTL cache
- Quote Synthesizer: categorize, re-price, aggregate, confidence
"""

__version__ = "1.0.0"
