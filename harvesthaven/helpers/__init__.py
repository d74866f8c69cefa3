from .time_helper import TimeHelper
from .logging_helper import LoggingHelper
from .data_helper import DataHelper
from .crop_helper import CropHelper
from .item_helper import ItemHelper
from .plot_helper import PlotHelper
from .economy_helper import EconomyHelper
from .quest_helper import QuestHelper
from .game_state_helper import GameStateHelper
from .farm_helper import FarmHelper
