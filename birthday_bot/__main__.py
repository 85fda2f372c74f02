"""Entry point for ``python -m birthday_bot``"""

from birthday_bot.bot import run

if __name__ == "__main__":
    run()
