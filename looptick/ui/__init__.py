"""Qt widgets for LoopTick."""
