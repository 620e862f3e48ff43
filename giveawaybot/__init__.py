"""Discord giveaway bot with persistent, restart-safe scheduling."""
