"""Console application: composition root, reminder service thread, slash commands."""
