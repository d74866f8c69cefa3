from typing import Optional


class FarmError(Exception):
    """
    Base class for every failure a farm command can report to a player.
    Each subclass carries a stable machine-readable code next to its human message.
    """

    code: str = "farm_error"
    default_message: str = "The farm command could not be completed."
    stale_view: bool = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "stale_view": self.stale_view}


class InvalidPlotError(FarmError):
    code = "invalid_plot"
    default_message = "That plot does not exist on this farm."


class PlotOccupiedError(FarmError):
    code = "plot_occupied"
    default_message = "That plot already has a crop growing in it."
    stale_view = True


class PlotEmptyError(FarmError):
    code = "plot_empty"
    default_message = "That plot is empty."
    stale_view = True


class NotReadyError(FarmError):
    code = "not_ready"
    default_message = "That crop is not ready to harvest yet."
    stale_view = True


class CropNotFoundError(FarmError):
    code = "crop_not_found"
    default_message = "No crop with that id exists."


class CropLockedError(FarmError):
    code = "crop_locked"
    default_message = "Your level is too low to plant that crop."


class InsufficientFundsError(FarmError):
    code = "insufficient_funds"
    default_message = "You do not have enough gold."


class RewardUnavailableError(FarmError):
    code = "reward_unavailable"
    default_message = "That reward cannot be claimed right now."


class QuestNotFoundError(FarmError):
    """Raised when a quest or achievement id has no matching record or definition."""

    code = "quest_not_found"
    default_message = "No quest or achievement with that id exists."


class VersionConflictError(FarmError):
    code = "version_conflict"
    default_message = "Your farm was changed by another action at the same time. Please try again."


class PersistenceTimeoutError(FarmError):
    code = "persistence_timeout"
    default_message = "Saving your farm took too long. Nothing was changed; please try again."


class ItemNotFoundError(FarmError):
    code = "item_not_found"
    default_message = "No item with that id exists."


class ItemUnavailableError(FarmError):
    """Raised when an item cannot be bought or used in the current situation."""

    code = "item_unavailable"
    default_message = "That item cannot be used right now."
