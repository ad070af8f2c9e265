"""Live game data: normalized snapshots, the ESPN adapter and the poll scheduler."""
