"""discord.py extensions loaded by the bot."""
