import dataclasses
import io
import json
import time
import traceback
from typing import List, Optional

import discord
from redbot.core import Config, commands, data_manager

from .decorators import is_cog_ready
from .errors import FarmError, RewardUnavailableError
from .helpers import (
    TimeHelper,
    LoggingHelper,
    DataHelper,
    CropHelper,
    ItemHelper,
    QuestHelper,
    GameStateHelper,
    FarmHelper,
)
from .models import FarmSettings, FarmView, HarvestResult


class HarvestHaven(commands.Cog):
    """Harvest Haven - Grow crops, level up, and climb the farm rankings."""

    GOLD_EMOJI = "🪙"
    GEM_EMOJI = "💎"
    DISCORD_LOG_CHANNEL_ID = 1386642972539621487
    PLOTS_PER_ROW = 7

    def __init__(self, bot: commands.Bot):
        self._initialized = False

        self.bot = bot
        self.config = Config.get_conf(self, identifier=482913650177204611)
        self.config.register_global(game_state={})

        self.cog_data_path = data_manager.bundled_data_path(self)
        self.logger = LoggingHelper(bot, self.DISCORD_LOG_CHANNEL_ID)
        self.data_loader = DataHelper(self.cog_data_path, self.logger)
        self.data_loader.load_all_data()

        self.game_state_helper = GameStateHelper(self.config, self.logger)

        self.crop_helper: Optional[CropHelper] = None
        self.item_helper: Optional[ItemHelper] = None
        self.quest_helper: Optional[QuestHelper] = None
        self.farm_helper: Optional[FarmHelper] = None

        self.startup_task = self.bot.loop.create_task(self.startup())

    def cog_unload(self):
        """Cog cleanup method."""

        if self.startup_task:
            self.startup_task.cancel()

        self.logger.init_log("Harvest Haven systems are now offline.", "INFO")

    async def _load_and_initialize_helpers(self):
        await self.game_state_helper.load_game_state()
        settings = self.game_state_helper.get_settings()

        self.crop_helper = CropHelper(self.data_loader.crops)
        self.quest_helper = QuestHelper(self.data_loader.quests, self.data_loader.achievements,
                                        settings.daily_reset_timezone)
        self.item_helper = ItemHelper(self.data_loader.items)
        self.farm_helper = FarmHelper(self.game_state_helper, self.crop_helper, self.quest_helper, self.logger,
                                      item_helper=self.item_helper)

    async def startup(self):
        """Loads the persisted game state once the bot is ready. Growth needs no background loop."""

        await self.bot.wait_until_ready()
        await self.logger.flush_init_log_queue()

        try:
            await self._load_and_initialize_helpers()
        except Exception as e:
            await self.logger.log_to_discord(f"Startup: CRITICAL failure while loading game state: {e}\n"
                                             f"{traceback.format_exc()}", "CRITICAL")
            raise

        self._initialized = True
        await self.logger.log_to_discord(
            f"Startup: Complete. {len(self.crop_helper)} crops, {len(self.quest_helper.quest_definitions)} daily "
            f"quests, {len(self.quest_helper.achievement_definitions)} achievements, {len(self.item_helper)} "
            f"shop items.", "INFO")

    # --- Shared rendering ---

    @staticmethod
    def _format_duration(seconds: int) -> str:
        minutes, secs = divmod(max(0, int(seconds)), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}h {minutes}m"
        if minutes:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    async def _send_error(self, ctx: commands.Context, error: FarmError):
        description = f"User {ctx.author.mention}, {error.message}"
        if error.stale_view:
            description += f"\n\nYour farm changed since you last looked. Use `{ctx.prefix}farm` to refresh."

        embed = discord.Embed(title="❌ Farm Action Failed", description=description, color=discord.Color.red())
        embed.set_footer(text=f"Error code: {error.code}")
        await ctx.send(embed=embed)

    async def _send_unexpected(self, ctx: commands.Context, command_name: str, error: Exception):
        await self.logger.log_to_discord(
            f"Command '{command_name}' by {ctx.author.id} failed: {error}\n{traceback.format_exc()}", "ERROR")
        await ctx.send(embed=discord.Embed(
            title="❌ Unexpected Farm Failure",
            description="Something went wrong while tending your farm. The incident has been logged.",
            color=discord.Color.red()
        ))

    async def _get_view(self, ctx: commands.Context, command_name: str) -> Optional[FarmView]:
        """Loads the author's farm view, reporting any failure to the channel. Returns None on failure."""

        try:
            return await self.farm_helper.get_farm(str(ctx.author.id), TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
        except Exception as e:
            await self._send_unexpected(ctx, command_name, e)
        return None

    def _plot_cell(self, plot) -> str:
        if plot.crop_id is None:
            return "⬛"
        if plot.is_ready:
            crop = self.crop_helper.get(plot.crop_id) if plot.crop_id in self.crop_helper else None
            return crop.icon if crop and crop.icon else "✅"
        return "💧" if plot.is_watered else "🌱"

    def _build_farm_embed(self, member: discord.abc.User, view: FarmView) -> discord.Embed:
        embed = discord.Embed(title=f"🌾 {member.display_name}'s Farm", color=discord.Color.green())

        embed.add_field(name="Level", value=f"**{view.level}** ({view.xp_into_level:,}/{view.xp_for_next_level:,} XP)",
                        inline=True)
        embed.add_field(name="Gold", value=f"{view.gold:,} {self.GOLD_EMOJI}", inline=True)
        embed.add_field(name="Gems", value=f"{view.gems:,} {self.GEM_EMOJI}", inline=True)

        rows = []
        for start in range(0, len(view.plots), self.PLOTS_PER_ROW):
            rows.append("".join(self._plot_cell(p) for p in view.plots[start:start + self.PLOTS_PER_ROW]))
        embed.add_field(name=f"Fields ({len(view.plots)} plots)", value="\n".join(rows) or "No plots.", inline=False)

        growing = []
        for plot in view.plots:
            if plot.crop_id is None:
                continue
            if plot.is_ready:
                status = "**Ready!**"
            else:
                status = f"{plot.growth_percent}% ({self._format_duration(plot.seconds_remaining)} left)"
            water = " 💧" if plot.is_watered else ""
            if plot.is_fertilized:
                water += " 💩"
            growing.append(f"▫️ Plot {plot.index + 1}: {plot.crop_name}{water} - {status}")

        if growing:
            embed.add_field(name="Growing", value="\n".join(growing[:15]), inline=False)

        embed.set_footer(text=f"Total harvests: {view.total_harvests:,} | Lifetime gold: "
                              f"{view.total_gold_earned:,}")
        return embed

    def _harvest_description(self, result: HarvestResult) -> str:
        crops = ", ".join(self.crop_helper.get(c).name if c in self.crop_helper else c for c in result.crop_ids)
        desc = (f"Harvested **{crops}** for **{result.reward.gold:,}** {self.GOLD_EMOJI} and "
                f"**{result.reward.xp:,}** XP.\n"
                f"Your balance is now **{result.view.gold:,}** {self.GOLD_EMOJI}.")

        if result.leveled_up:
            desc += f"\n\n⭐ **Level up!** You are now level **{result.new_level}**."

        for delta in result.quest_deltas:
            quest = next((q for q in result.view.quests if q.id == delta.quest_id), None)
            name = quest.name if quest else delta.quest_id
            marker = "✅" if delta.completed else "▫️"
            desc += f"\n{marker} Quest **{name}**: {delta.progress_after}/{quest.target if quest else '?'}"

        for achievement_id in result.unlocked_achievements:
            achievement = next((a for a in result.view.achievements if a.id == achievement_id), None)
            desc += f"\n🏆 Achievement unlocked: **{achievement.name if achievement else achievement_id}**"

        return desc

    # --- Player commands ---

    @commands.command(name="farm")
    @is_cog_ready()
    async def farm_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """View your farm or another farmer's."""

        target_user = user or ctx.author
        try:
            view = await self.farm_helper.get_farm(str(target_user.id), TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "farm", e)
            return

        await ctx.send(embed=self._build_farm_embed(target_user, view))

    @commands.command(name="crops")
    @is_cog_ready()
    async def crops_command(self, ctx: commands.Context):
        """List every crop, its price and its growing time."""

        view = await self._get_view(ctx, "crops")
        if view is None:
            return

        lines = []
        for crop in self.crop_helper.get_all():
            locked = "" if crop.unlock_level <= view.level else f" 🔒 Lv.{crop.unlock_level}"
            lines.append(f"{crop.icon or '▫️'} **{crop.name}** (`{crop.id}`) T{crop.tier} - seed "
                         f"{crop.seed_cost:,} {self.GOLD_EMOJI}, sells {crop.base_gold_yield:,}, "
                         f"{self._format_duration(crop.grow_duration_seconds)}{locked}")

        embed = discord.Embed(title="🌱 Seed Catalog", description="\n".join(lines), color=discord.Color.green())
        embed.set_footer(text=f"Use {ctx.prefix}plant <plot> <crop> to plant. Watering speeds growth by 1.5x.")
        await ctx.send(embed=embed)

    @commands.command(name="plant")
    @is_cog_ready()
    async def plant_command(self, ctx: commands.Context, plot_number: int, *, crop_name: str):
        """Plant a crop in one of your plots."""

        now = TimeHelper.get_current_timestamp()
        try:
            crop = self.crop_helper.find(crop_name)
            view = await self.farm_helper.plant(str(ctx.author.id), plot_number - 1, crop.id, now)
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "plant", e)
            return

        plot = view.plots[plot_number - 1]
        embed = discord.Embed(
            title=f"{crop.icon or '🌱'} Crop Planted",
            description=f"User {ctx.author.mention}, **{crop.name}** is now growing in plot **{plot_number}**.\n"
                        f"Seeds cost **{crop.seed_cost:,}** {self.GOLD_EMOJI}. Remaining balance: "
                        f"**{view.gold:,}** {self.GOLD_EMOJI}.\n"
                        f"Ready in **{self._format_duration(plot.seconds_remaining)}** "
                        f"(water it to speed things up).",
            color=discord.Color.green()
        )
        await ctx.send(embed=embed)

    @commands.command(name="water")
    @is_cog_ready()
    async def water_command(self, ctx: commands.Context, *plot_numbers: int):
        """Water one or more plots to make them grow faster."""

        if not plot_numbers:
            await ctx.send(embed=discord.Embed(
                title="⚠️ No Plots Specified",
                description=f"Syntax: `{ctx.prefix}water <plot_num_1> [plot_num_2] ...`",
                color=discord.Color.orange()))
            return

        owner_id = str(ctx.author.id)
        now = TimeHelper.get_current_timestamp()
        watered: List[str] = []
        error_messages: List[str] = []
        view = None

        for plot_number in sorted(set(plot_numbers)):
            try:
                view = await self.farm_helper.water(owner_id, plot_number - 1, now)
            except FarmError as e:
                error_messages.append(f"Plot {plot_number}: {e.message}")
                continue
            except Exception as e:
                await self._send_unexpected(ctx, "water", e)
                return

            plot = view.plots[plot_number - 1]
            remaining = "ready" if plot.is_ready else f"{self._format_duration(plot.seconds_remaining)} left"
            watered.append(f"▫️ Plot {plot_number}: {plot.crop_name} ({remaining})")

        if not watered:
            desc = "Nothing was watered:\n\n" + "\n".join(f"• {msg}" for msg in error_messages)
            await ctx.send(embed=discord.Embed(title="❌ Watering Failed", description=desc,
                                               color=discord.Color.red()))
            return

        desc = "\n".join(watered)
        if error_messages:
            desc += "\n\n**Advisory:** Some plots were not watered:\n" + "\n".join(
                f"• {msg}" for msg in error_messages)

        await ctx.send(embed=discord.Embed(title="💧 Plots Watered", description=desc, color=discord.Color.blue()))

    @commands.command(name="harvest")
    @is_cog_ready()
    async def harvest_command(self, ctx: commands.Context, *plot_numbers: int):
        """Harvest ready crops from one or more plots."""

        if not plot_numbers:
            await ctx.send(embed=discord.Embed(
                title="⚠️ No Plots Specified",
                description=f"Syntax: `{ctx.prefix}harvest <plot_num_1> [plot_num_2] ...`\n"
                            f"Use `{ctx.prefix}harvestall` to collect everything that is ready.",
                color=discord.Color.orange()))
            return

        owner_id = str(ctx.author.id)
        now = TimeHelper.get_current_timestamp()
        descriptions: List[str] = []
        error_messages: List[str] = []

        for plot_number in sorted(set(plot_numbers)):
            try:
                result = await self.farm_helper.harvest(owner_id, plot_number - 1, now)
            except FarmError as e:
                error_messages.append(f"Plot {plot_number}: {e.message}")
                continue
            except Exception as e:
                await self._send_unexpected(ctx, "harvest", e)
                return
            descriptions.append(f"**Plot {plot_number}:** " + self._harvest_description(result))

        if not descriptions:
            desc = "Nothing was harvested:\n\n" + "\n".join(f"• {msg}" for msg in error_messages)
            await ctx.send(embed=discord.Embed(title="❌ Harvest Failed", description=desc,
                                               color=discord.Color.red()))
            return

        desc = "\n\n".join(descriptions)
        if error_messages:
            desc += "\n\n**Advisory:** Some plots were not harvested:\n" + "\n".join(
                f"• {msg}" for msg in error_messages)

        await ctx.send(embed=discord.Embed(title="🧺 Harvest Complete", description=desc[:4000],
                                           color=discord.Color.gold()))

    @commands.command(name="harvestall")
    @is_cog_ready()
    async def harvestall_command(self, ctx: commands.Context):
        """Harvest every ready crop on your farm."""

        try:
            result = await self.farm_helper.harvest_all(str(ctx.author.id), TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "harvestall", e)
            return

        await ctx.send(embed=discord.Embed(title=f"🧺 Harvested {len(result.crop_ids)} Crops",
                                           description=self._harvest_description(result)[:4000],
                                           color=discord.Color.gold()))

    @commands.command(name="quests")
    @is_cog_ready()
    async def quests_command(self, ctx: commands.Context):
        """Show today's quests."""

        view = await self._get_view(ctx, "quests")
        if view is None:
            return

        if not view.quests:
            await ctx.send("There are no daily quests right now.")
            return

        lines = []
        for quest in view.quests:
            if quest.claimed:
                marker = "☑️"
            elif quest.completed:
                marker = "✅"
            else:
                marker = "▫️"
            reward = f"{quest.reward_gold:,} {self.GOLD_EMOJI}"
            if quest.reward_gems:
                reward += f" + {quest.reward_gems} {self.GEM_EMOJI}"
            lines.append(f"{marker} **{quest.name}** (`{quest.id}`): {quest.progress}/{quest.target} - {reward}")

        reset_in = min(q.seconds_until_reset for q in view.quests)
        embed = discord.Embed(title="📜 Daily Quests", description="\n".join(lines), color=discord.Color.teal())
        embed.set_footer(text=f"Quests reset in {self._format_duration(reset_in)}. "
                              f"Claim with {ctx.prefix}claimquest <id>.")
        await ctx.send(embed=embed)

    @commands.command(name="claimquest")
    @is_cog_ready()
    async def claimquest_command(self, ctx: commands.Context, quest_id: str):
        """Claim the reward for a completed daily quest."""

        try:
            result = await self.farm_helper.claim_quest(str(ctx.author.id), quest_id.lower(),
                                                        TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "claimquest", e)
            return

        gems = f" and **{result.gems}** {self.GEM_EMOJI}" if result.gems else ""
        await ctx.send(embed=discord.Embed(
            title="🎁 Quest Reward Claimed",
            description=f"User {ctx.author.mention}, you received **{result.gold:,}** {self.GOLD_EMOJI}{gems}.\n"
                        f"Your balance is now **{result.view.gold:,}** {self.GOLD_EMOJI}.",
            color=discord.Color.green()))

    @commands.command(name="achievements")
    @is_cog_ready()
    async def achievements_command(self, ctx: commands.Context):
        """Show your achievements."""

        view = await self._get_view(ctx, "achievements")
        if view is None:
            return

        lines = []
        for achievement in view.achievements:
            if achievement.claimed:
                marker = "☑️"
            elif achievement.unlocked:
                marker = "🏆"
            else:
                marker = "🔒"
            lines.append(f"{marker} **{achievement.name}** (`{achievement.id}`): "
                         f"{achievement.progress:,}/{achievement.threshold:,}")

        embed = discord.Embed(title="🏆 Achievements", description="\n".join(lines) or "No achievements defined.",
                              color=discord.Color.gold())
        embed.set_footer(text=f"Claim unlocked rewards with {ctx.prefix}claimachievement <id>.")
        await ctx.send(embed=embed)

    @commands.command(name="claimachievement")
    @is_cog_ready()
    async def claimachievement_command(self, ctx: commands.Context, achievement_id: str):
        """Claim the reward for an unlocked achievement."""

        try:
            result = await self.farm_helper.claim_achievement(str(ctx.author.id), achievement_id.lower(),
                                                              TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "claimachievement", e)
            return

        gems = f" and **{result.gems}** {self.GEM_EMOJI}" if result.gems else ""
        await ctx.send(embed=discord.Embed(
            title="🏆 Achievement Reward Claimed",
            description=f"User {ctx.author.mention}, you received **{result.gold:,}** {self.GOLD_EMOJI}{gems}.",
            color=discord.Color.gold()))

    @commands.command(name="farmdaily")
    @is_cog_ready()
    async def farmdaily_command(self, ctx: commands.Context):
        """Collect your daily gold."""

        now = TimeHelper.get_current_timestamp()
        try:
            result = await self.farm_helper.claim_daily(str(ctx.author.id), now)
        except RewardUnavailableError as e:
            tz_name = self.game_state_helper.get_settings().daily_reset_timezone
            next_reset = int(TimeHelper.next_daily_boundary(now, tz_name))
            embed = discord.Embed(
                title="❌ Daily Reward Already Collected",
                description=f"User {ctx.author.mention}, {e.message}\nNext collection: <t:{next_reset}:R>.",
                color=discord.Color.red())
            await ctx.send(embed=embed)
            return
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "farmdaily", e)
            return

        await ctx.send(embed=discord.Embed(
            title="☀️ Daily Reward Collected",
            description=f"User {ctx.author.mention}, **{result.gold:,}** {self.GOLD_EMOJI} has been added to your "
                        f"farm.\nYour balance is now **{result.view.gold:,}** {self.GOLD_EMOJI}.",
            color=discord.Color.green()))

    @commands.command(name="expandfarm")
    @is_cog_ready()
    async def expandfarm_command(self, ctx: commands.Context):
        """Buy one more plot of land."""

        try:
            result = await self.farm_helper.expand_plots(str(ctx.author.id), TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "expandfarm", e)
            return

        next_cost = self.farm_helper.get_expansion_cost(len(result.view.plots))
        await ctx.send(embed=discord.Embed(
            title="📐 Farm Expanded",
            description=f"User {ctx.author.mention}, you bought plot **{len(result.view.plots)}** for "
                        f"**{-result.gold:,}** {self.GOLD_EMOJI}.\n"
                        f"The next plot will cost **{next_cost:,}** {self.GOLD_EMOJI}.",
            color=discord.Color.green()))

    # --- Shop and inventory ---

    def _price_text(self, item) -> str:
        parts = []
        if item.price_gold:
            parts.append(f"{item.price_gold:,} {self.GOLD_EMOJI}")
        if item.price_gems:
            parts.append(f"{item.price_gems:,} {self.GEM_EMOJI}")
        return " + ".join(parts)

    @commands.command(name="farmshop")
    @is_cog_ready()
    async def farmshop_command(self, ctx: commands.Context):
        """Browse the farm supply shop."""

        view = await self._get_view(ctx, "farmshop")
        if view is None:
            return

        items = self.item_helper.get_all()
        if not items:
            await ctx.send("The farm shop has nothing for sale right now.")
            return

        lines = []
        for item in items:
            locked = "" if item.unlock_level <= view.level else f" 🔒 Lv.{item.unlock_level}"
            owned = view.inventory.get(item.id, 0)
            limit = f" (max {item.max_quantity})" if item.max_quantity > 0 else ""
            lines.append(f"{item.icon or '▫️'} **{item.name}** (`{item.id}`) - {self._price_text(item)}{locked}\n"
                         f"  *{item.description}* Owned: {owned}{limit}")

        embed = discord.Embed(title="🏪 Farm Supply Shop", description="\n".join(lines)[:4000],
                              color=discord.Color.blue())
        embed.set_footer(text=f"Balance: {view.gold:,} gold, {view.gems:,} gems | "
                              f"Use {ctx.prefix}farmbuy <item> [quantity] to purchase.")
        await ctx.send(embed=embed)

    @commands.command(name="farmbuy")
    @is_cog_ready()
    async def farmbuy_command(self, ctx: commands.Context, item_name: str, quantity: int = 1):
        """Buy an item from the farm shop."""

        try:
            item = self.item_helper.find(item_name)
            result = await self.farm_helper.buy_item(str(ctx.author.id), item.id, quantity,
                                                     TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "farmbuy", e)
            return

        spent = []
        if result.gold:
            spent.append(f"**{-result.gold:,}** {self.GOLD_EMOJI}")
        if result.gems:
            spent.append(f"**{-result.gems:,}** {self.GEM_EMOJI}")

        await ctx.send(embed=discord.Embed(
            title=f"{item.icon or '🛒'} Purchase Complete",
            description=f"User {ctx.author.mention}, you bought **{quantity}x {item.name}** for "
                        f"{' and '.join(spent)}.\n"
                        f"You now own **{result.view.inventory.get(item.id, 0)}**. Remaining balance: "
                        f"**{result.view.gold:,}** {self.GOLD_EMOJI}, **{result.view.gems:,}** {self.GEM_EMOJI}.",
            color=discord.Color.green()))

    @commands.command(name="useitem")
    @is_cog_ready()
    async def useitem_command(self, ctx: commands.Context, plot_number: int, *, item_name: str):
        """Use an item from your inventory on a growing plot."""

        try:
            item = self.item_helper.find(item_name)
            view = await self.farm_helper.use_item(str(ctx.author.id), plot_number - 1, item.id,
                                                   TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return
        except Exception as e:
            await self._send_unexpected(ctx, "useitem", e)
            return

        plot = view.plots[plot_number - 1]
        if plot.is_ready:
            remaining = "is ready to harvest"
        else:
            remaining = f"will be ready in **{self._format_duration(plot.seconds_remaining)}**"
        await ctx.send(embed=discord.Embed(
            title=f"{item.icon or '✨'} {item.name} Applied",
            description=f"User {ctx.author.mention}, your {plot.crop_name} in plot **{plot_number}** {remaining}.\n"
                        f"**{view.inventory.get(item.id, 0)}** {item.name} left in your inventory.",
            color=discord.Color.green()))

    @commands.command(name="farminventory", aliases=["farminv"])
    @is_cog_ready()
    async def farminventory_command(self, ctx: commands.Context):
        """Show the items you own."""

        view = await self._get_view(ctx, "farminventory")
        if view is None:
            return

        lines = []
        for item_id, quantity in sorted(view.inventory.items()):
            item = self.item_helper.get(item_id) if item_id in self.item_helper else None
            name = f"{item.icon or '▫️'} **{item.name}**" if item else f"▫️ **{item_id}**"
            lines.append(f"{name} (`{item_id}`) × {quantity}")

        embed = discord.Embed(title=f"🎒 {ctx.author.display_name}'s Inventory",
                              description="\n".join(lines) or "Your inventory is empty.",
                              color=discord.Color.blue())
        embed.set_footer(text=f"Use {ctx.prefix}useitem <plot> <item> to apply fertilizer.")
        await ctx.send(embed=embed)

    @commands.command(name="farmleaderboard")
    @is_cog_ready()
    async def leaderboard_command(self, ctx: commands.Context, page: int = 1):
        """Display the top farmers by lifetime gold earned."""

        sorted_users = self.farm_helper.get_sorted_leaderboard()

        if not sorted_users:
            await ctx.send("There is no farm data to display on the leaderboard yet.")
            return

        items_per_page = 10
        total_pages = max(1, (len(sorted_users) + items_per_page - 1) // items_per_page)
        page = max(1, min(page, total_pages))
        start_index = (page - 1) * items_per_page

        lb_lines = []
        medals = ["🥇", "🥈", "🥉"]

        for i, entry in enumerate(sorted_users[start_index: start_index + items_per_page]):
            rank = start_index + i + 1
            user_obj = self.bot.get_user(int(entry["owner_id"]))
            display_name = user_obj.display_name if user_obj else f"Farmer {entry['owner_id']}"
            escaped_name = discord.utils.escape_markdown(display_name)

            medal = medals[rank - 1] if rank <= 3 else "▫️"
            lb_lines.append(f"{medal} **#{rank}** {escaped_name}: {entry['total_gold_earned']:,} "
                            f"{self.GOLD_EMOJI} (Lv.{entry['level']})")

        embed = discord.Embed(
            title=f"📊 Harvest Haven Rankings (Page {page}/{total_pages})",
            description="\n".join(lb_lines),
            color=discord.Color.green()
        )
        own_rank = self.farm_helper.get_user_rank(str(ctx.author.id))
        footer = f"Use {ctx.prefix}farmleaderboard [page_num] to navigate."
        if own_rank:
            footer = f"Your rank: #{own_rank}. " + footer
        embed.set_footer(text=footer)
        await ctx.send(embed=embed)

    @commands.command(name="farmhelp")
    @is_cog_ready()
    async def farmhelp_command(self, ctx: commands.Context):
        """Display the Harvest Haven command list."""

        prefix = ctx.prefix
        embed = discord.Embed(title="🌾 Harvest Haven - Command List",
                              description=f"Welcome, {ctx.author.mention}! Plant seeds, water them, and harvest "
                                          f"them for gold and experience.",
                              color=discord.Color.teal())

        embed.add_field(name="🌱 Farming", inline=False, value=(
            f"▫️ `{prefix}farm [@user]` - View a farm.\n"
            f"▫️ `{prefix}crops` - Browse the seed catalog.\n"
            f"▫️ `{prefix}plant <plot> <crop>` - Plant a crop.\n"
            f"▫️ `{prefix}water <plot...>` - Water plots to grow 1.5x faster.\n"
            f"▫️ `{prefix}harvest <plot...>` - Harvest ready crops.\n"
            f"▫️ `{prefix}harvestall` - Harvest everything that is ready.\n"
            f"▫️ `{prefix}expandfarm` - Buy another plot."
        ))
        embed.add_field(name="🏪 Shop", inline=False, value=(
            f"▫️ `{prefix}farmshop` - Browse items.\n"
            f"▫️ `{prefix}farmbuy <item> [quantity]` - Buy an item.\n"
            f"▫️ `{prefix}useitem <plot> <item>` - Fertilize a growing crop.\n"
            f"▫️ `{prefix}farminventory` - Show what you own."
        ))
        embed.add_field(name="🎯 Goals", inline=False, value=(
            f"▫️ `{prefix}quests` / `{prefix}claimquest <id>` - Daily quests.\n"
            f"▫️ `{prefix}achievements` / `{prefix}claimachievement <id>` - Milestones.\n"
            f"▫️ `{prefix}farmdaily` - Collect your daily gold.\n"
            f"▫️ `{prefix}farmleaderboard [page]` - Farmer rankings."
        ))

        tz_name = self.game_state_helper.get_settings().daily_reset_timezone
        embed.set_footer(text=f"Daily quests and rewards reset at midnight {tz_name}.")
        await ctx.send(embed=embed)

    # --- Owner commands ---

    @commands.group(name="farmadmin")
    @is_cog_ready()
    @commands.is_owner()
    async def farmadmin_group(self, ctx: commands.Context):
        """Base command for owner-only Harvest Haven utilities."""
        pass

    @farmadmin_group.command(name="setgold")
    async def admin_setgold_command(self, ctx: commands.Context, amount: int, target_user: discord.Member):
        """Sets a farmer's gold to a specific amount."""

        if amount < 0:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input",
                                               description="Amount cannot be negative.",
                                               color=discord.Color.red()))
            return

        now = TimeHelper.get_current_timestamp()
        original = await self.farm_helper.get_farm(str(target_user.id), now)
        view = await self.farm_helper.set_gold(str(target_user.id), amount, now)

        embed = discord.Embed(title="⚙️ Admin: Gold Set",
                              description=f"Set the gold balance for {target_user.mention}.",
                              color=discord.Color.orange())
        embed.add_field(name="Original Balance", value=f"{original.gold:,} {self.GOLD_EMOJI}", inline=True)
        embed.add_field(name="New Balance", value=f"{view.gold:,} {self.GOLD_EMOJI}", inline=True)
        await ctx.send(embed=embed)
        await self.logger.log_to_discord(f"Admin {ctx.author.id} set gold of {target_user.id} to {amount}.", "INFO")

    @farmadmin_group.command(name="addgold")
    async def admin_addgold_command(self, ctx: commands.Context, amount: int, target_user: discord.Member):
        """Adds gold to a farmer's balance. Negative amounts remove gold, down to zero."""

        view = await self.farm_helper.grant_gold(str(target_user.id), amount, TimeHelper.get_current_timestamp())

        await ctx.send(embed=discord.Embed(
            title="⚙️ Admin: Gold Adjusted",
            description=f"Adjusted {target_user.mention}'s gold by **{amount:+,}**. New balance: "
                        f"**{view.gold:,}** {self.GOLD_EMOJI}.",
            color=discord.Color.orange()))
        await self.logger.log_to_discord(f"Admin {ctx.author.id} adjusted gold of {target_user.id} by {amount}.",
                                         "INFO")

    @farmadmin_group.command(name="additem")
    async def admin_additem_command(self, ctx: commands.Context, target_user: discord.Member, item_id: str,
                                    quantity: int = 1):
        """Adds (or removes, with a negative quantity) inventory items for a farmer."""

        try:
            view = await self.farm_helper.grant_item(str(target_user.id), item_id, quantity,
                                                     TimeHelper.get_current_timestamp())
        except FarmError as e:
            await self._send_error(ctx, e)
            return

        await ctx.send(embed=discord.Embed(
            title="⚙️ Admin: Inventory Updated",
            description=f"{target_user.mention} now holds **{view.inventory.get(item_id, 0)}** × `{item_id}`.",
            color=discord.Color.orange()))

    @farmadmin_group.command(name="settings")
    async def admin_settings_command(self, ctx: commands.Context, key: Optional[str] = None,
                                     value: Optional[str] = None):
        """Shows the game settings, or changes one of them."""

        settings = self.game_state_helper.get_settings()
        settings_dict = dataclasses.asdict(settings)

        if key is None:
            lines = [f"▫️ `{k}`: {v}" for k, v in settings_dict.items()]
            await ctx.send(embed=discord.Embed(title="⚙️ Harvest Haven Settings", description="\n".join(lines),
                                               color=discord.Color.orange()))
            return

        if key not in settings_dict or value is None:
            await ctx.send(embed=discord.Embed(
                title="❌ Invalid Setting",
                description=f"Syntax: `{ctx.prefix}farmadmin settings <key> <value>`.\n"
                            f"Known keys: {', '.join(f'`{k}`' for k in settings_dict)}",
                color=discord.Color.red()))
            return

        default_type = type(getattr(FarmSettings(), key))
        try:
            new_value = default_type(value)
        except ValueError:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Value",
                                               description=f"`{key}` expects a {default_type.__name__}.",
                                               color=discord.Color.red()))
            return

        if key == "daily_reset_timezone":
            new_value = TimeHelper.get_timezone(new_value).zone
            self.quest_helper.tz_name = new_value

        self.game_state_helper.set_global_state(key, new_value)
        await self.game_state_helper.commit_to_disk()

        await ctx.send(embed=discord.Embed(title="✅ Setting Updated",
                                           description=f"`{key}`: {settings_dict[key]} → {new_value}",
                                           color=discord.Color.green()))
        await self.logger.log_to_discord(f"Admin {ctx.author.id} set '{key}' to {new_value!r}.", "INFO")

    @farmadmin_group.command(name="dumpdata")
    async def admin_dumpdata_command(self, ctx: commands.Context):
        """Dumps the entire current game state into a JSON file."""

        json_bytes = json.dumps(self.game_state_helper.game_state, indent=4).encode('utf-8')
        file = discord.File(io.BytesIO(json_bytes), filename=f"harvest_haven_data_{int(time.time())}.json")

        embed = discord.Embed(
            title="⚙️ Admin: Game State Dump",
            description="The current in-memory game state has been serialized.",
            color=discord.Color.green()
        )
        await ctx.send(embed=embed, file=file)
