import dataclasses
import math
from typing import Optional

from ..models import Crop, GrowthStatus, Plot


class PlotHelper:
    """
    Pure functions over a single plot and the current time.
    Growth is recomputed from planted_at on every call; nothing here stores or caches progress.
    """

    WATER_MULTIPLIER = 1.5

    EMPTY = "empty"
    PLANTED = "planted"
    WATERED = "watered"
    READY = "ready"

    @staticmethod
    def is_watered(plot: Plot) -> bool:
        """Watering only counts when it happened after the current crop was planted."""
        return (
            plot.crop_id is not None
            and plot.planted_at is not None
            and plot.watered_at is not None
            and plot.watered_at >= plot.planted_at
        )

    @staticmethod
    def is_fertilized(plot: Plot) -> bool:
        return (
            plot.crop_id is not None
            and plot.planted_at is not None
            and plot.fertilized_at is not None
            and plot.fertilized_at >= plot.planted_at
        )

    @staticmethod
    def effective_duration(plot: Plot, crop: Crop) -> float:
        duration = float(crop.grow_duration_seconds)
        if PlotHelper.is_watered(plot):
            duration /= PlotHelper.WATER_MULTIPLIER
        if PlotHelper.is_fertilized(plot) and plot.growth_bonus > 1.0:
            duration /= plot.growth_bonus
        return duration

    @staticmethod
    def derive(plot: Plot, crop: Optional[Crop], now: float) -> GrowthStatus:
        if plot.crop_id is None or plot.planted_at is None or crop is None:
            return GrowthStatus(growth_percent=None, is_ready=False, seconds_remaining=0)

        # Clock skew between hosts can put planted_at slightly in the future.
        elapsed = max(0.0, now - plot.planted_at)
        duration = PlotHelper.effective_duration(plot, crop)

        growth_percent = min(100, math.floor(elapsed * 100 / duration))
        seconds_remaining = max(0, math.ceil(duration - elapsed))

        return GrowthStatus(
            growth_percent=growth_percent,
            is_ready=growth_percent >= 100,
            seconds_remaining=seconds_remaining,
        )

    @staticmethod
    def state_of(plot: Plot, crop: Optional[Crop], now: float) -> str:
        if plot.is_empty:
            return PlotHelper.EMPTY
        if PlotHelper.derive(plot, crop, now).is_ready:
            return PlotHelper.READY
        if PlotHelper.is_watered(plot):
            return PlotHelper.WATERED
        return PlotHelper.PLANTED

    @staticmethod
    def planted(plot: Plot, crop: Crop, now: float) -> Plot:
        return Plot(index=plot.index, crop_id=crop.id, planted_at=now)

    @staticmethod
    def watered(plot: Plot, now: float) -> Plot:
        return dataclasses.replace(plot, watered_at=now)

    @staticmethod
    def fertilized(plot: Plot, now: float, growth_bonus: float) -> Plot:
        if growth_bonus < 1.0:
            raise ValueError(f"Growth bonus must be at least 1.0, got {growth_bonus}.")
        return dataclasses.replace(plot, fertilized_at=now, growth_bonus=growth_bonus)

    @staticmethod
    def cleared(plot: Plot) -> Plot:
        return Plot(index=plot.index)
