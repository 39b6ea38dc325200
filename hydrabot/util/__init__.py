"""Small helpers shared across the bot."""
