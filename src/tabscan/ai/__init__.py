"""
AI arbitration for TabScan.

- **ai_arbitrator.py**: Sends one nickname per request to an OpenAI-compatible
  chat completion endpoint and parses the BAN/REVIEW/OK decision, falling back
  to REVIEW on any failure.
"""
