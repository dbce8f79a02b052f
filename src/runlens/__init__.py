"""runlens — tool-call and model-call analytics for agent runs.

Agents report what they do (tool calls, LLM requests, errors) into an
append-only event log. runlens turns that log into cost estimates,
latency percentiles, budget warnings, and regression signals between runs.
"""

__version__ = "0.1.0"
