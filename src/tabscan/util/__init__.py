"""
Utility helpers for TabScan.

- **logger.py**: Logging setup with colored console output routed through
  prompt_toolkit and rotating per-session log files. Quiets verbose HTTP and
  OpenAI client loggers.
"""
