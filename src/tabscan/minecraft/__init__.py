"""
Minecraft connectivity.

- **protocol.py**: VarInt framing, compression and the handful of packets used
- **game_session.py**: One TCP session from handshake to disconnect
- **connection_supervisor.py**: Lifecycle state machine and reconnects
- **player_enumerator.py**: Online player sweep via tab completion
"""
