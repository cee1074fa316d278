"""
TabScan - Minecraft Nickname Moderation Helper

TabScan keeps a bot account logged into a Minecraft server, enumerates the
online players through tab completion and sorts their nicknames into BAN,
REVIEW and OK lists for a human moderator.

Core Components:

- **Game Session**: Minimal offline-mode client with keep-alive, spawn and
  tab-completion handling, supervised with automatic reconnects
- **Player Enumeration**: Prefix sweeps over tab completion, de-duplicated
- **Rules Tier**: Normalization (homoglyphs, leet, separators, repeats) and
  configurable BAN/REVIEW word lists with an exact whitelist
- **AI Tier**: Optional arbitration of REVIEW nicknames through an
  OpenAI-compatible endpoint, with budgets and confidence thresholds
- **Interactive Console**: Scans, single-nickname checks, rule reloads and
  graceful restart/shutdown

Usage:
    from tabscan.main import main
    main()  # Starts the scanner with console interface
"""
