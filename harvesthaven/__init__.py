async def setup(bot):
    from .harvesthaven import HarvestHaven

    await bot.add_cog(HarvestHaven(bot))
