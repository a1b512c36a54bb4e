"""
NFT trait rarity scoring.
"""

from .pipeline import *  # noqa: F401,F403
from .pipeline import __all__, __version__  # noqa: F401
