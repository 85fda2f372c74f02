"""Birthday feature constants."""

import discord

# Theme
SUCCESS_COLOR = discord.Color(0x00FF00)
ERROR_COLOR = discord.Color(0xFF0000)
INFO_COLOR = discord.Color(0x00AE86)
WARNING_COLOR = discord.Color(0xFFAA00)
BIRTHDAY_COLOR = discord.Color(0xFF69B4)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

DATE_EXAMPLES = "• 12/25 (December 25th)\n• 7/3 (July 3rd)\n• 04/20 (April 20th)"

RECENT_REGISTRATION_DAYS = 30

# Discord caps embed descriptions at 4096 characters
EMBED_DESCRIPTION_LIMIT = 4096
