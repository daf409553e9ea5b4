"""Input/output adapters (console REPL, console notifications)."""
