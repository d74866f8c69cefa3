from datetime import datetime, timezone
from typing import List, Optional, Tuple

import discord
from discord.ext import commands


class LoggingHelper:
    """
    Handles all logging operations: console output always, plus the Discord log channel when a bot is attached.
    Messages below `discord_min_level` are kept on the console only.
    """

    LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

    def __init__(self, bot: Optional[commands.Bot], log_channel_id: int, discord_min_level: str = "INFO"):
        self.bot = bot
        self.log_channel_id = log_channel_id
        self.discord_min_level = discord_min_level.upper()
        self._init_log_queue: List[Tuple[str, str]] = []

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')

    def _should_send(self, level: str) -> bool:
        level = level.upper()
        if level not in self.LEVELS:
            return True
        return self.LEVELS.index(level) >= self.LEVELS.index(self.discord_min_level)

    async def log_to_discord(self, message: str, level: str = "INFO", embed: Optional[discord.Embed] = None):
        """Sends a formatted log message to the designated Discord log channel."""

        if self.bot is None:
            print(f"[LOG|{level.upper()}|{self._timestamp()}] {message}")
            return

        if not self.bot.is_ready():
            self._init_log_queue.append((message, level))
            print(f"[LOG_QUEUE|{level.upper()}] Bot not ready. Queued: {message}")
            return

        log_channel = self.bot.get_channel(self.log_channel_id)

        if not isinstance(log_channel, discord.TextChannel):
            print(
                f"[LOG_ERROR|{level.upper()}] Log channel {self.log_channel_id} not found or not a TextChannel. "
                f"Message: {message}")
            return

        log_prefix = f"`[{self._timestamp()}] [{level.upper()}]` "

        try:
            full_message = log_prefix + message

            if len(full_message) <= 2000:
                await log_channel.send(content=full_message, embed=embed,
                                       allowed_mentions=discord.AllowedMentions.none())
            else:
                await log_channel.send(content=f"{log_prefix}Log message exceeds 2000 characters. See chunks below.",
                                       embed=embed, allowed_mentions=discord.AllowedMentions.none())

                for i in range(0, len(message), 1900):
                    await log_channel.send(f"```{level.upper()} Chunk {i // 1900 + 1}```\n{message[i:i + 1900]}")
        except discord.Forbidden:
            print(f"[LOG_FORBIDDEN] No permission to send to log channel {self.log_channel_id}.")
        except discord.HTTPException as e:
            print(f"[LOG_HTTP_ERROR] Failed to send to log channel {self.log_channel_id}: {e}")

    def init_log(self, message: str, level: str = "INFO"):
        """
        Synchronous logger, usable from non-async code such as the farm helpers.
        Prints to console immediately and forwards to Discord when the bot loop is running.
        """

        print(f"[INIT_LOG|{level.upper()}|{self._timestamp()}] {message}")

        if self.bot is None or not self._should_send(level):
            return

        if hasattr(self.bot, 'loop') and self.bot.loop.is_running():
            self.bot.loop.create_task(self.log_to_discord(message, level=level))
        else:
            self._init_log_queue.append((message, level))

    async def flush_init_log_queue(self):
        """Sends any queued logs generated before the bot was ready."""

        if self._init_log_queue:
            self.init_log(f"Flushing {len(self._init_log_queue)} queued startup logs...", "DEBUG")
            queued = list(self._init_log_queue)
            self._init_log_queue.clear()
            for msg, level in queued:
                await self.log_to_discord(msg, level)
