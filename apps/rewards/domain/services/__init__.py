from .effect_stack import EffectStack
from .reward_engine import RewardEngine, RewardGrant
from .spellbook import Spellbook
from .shop import ChestShop
from .focus import FocusTimer

__all__ = ["EffectStack", "RewardEngine", "RewardGrant", "Spellbook", "ChestShop", "FocusTimer"]
