import discord
from redbot.core import commands


def is_cog_ready():
    """
    A commands.check decorator that fails until the cog has loaded its game state and built its helpers.
    Commands arriving during startup get a short notice instead of touching a half-built farm.
    """

    async def predicate(ctx: commands.Context):
        if not getattr(ctx.cog, '_initialized', False):
            embed = discord.Embed(
                title="⏳ The Farm Is Waking Up",
                description="Harvest Haven is still loading its fields. Please try your command again in a moment.",
                color=discord.Color.orange()
            )
            await ctx.send(embed=embed, delete_after=10)
            return False
        return True

    return commands.check(predicate)
