"""
SKProgress — cloud progress sync for the pixel arcade.

Keeps a player's coins, high score, unlocks and gate completion
in step between the device and the cloud profile, whichever
sign-in backend the player used.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

PROGRESS_HOME = os.environ.get("SKPROGRESS_HOME", "~/.skprogress")
