"""Discord bot that announces community members' birthdays."""
