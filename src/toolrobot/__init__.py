import logging
from pathlib import Path

# assumes:
# toolrobot
# ├ src/
# | └ toolrobot
# |   └ __init__.py - (this file)
# └ VERSION
try:
    with open(Path(__file__).parent.parent.parent / "VERSION", "r") as f:
        __version__ = f.readline().strip()
except FileNotFoundError:
    # installed as a wheel; VERSION only exists in a source checkout
    from importlib.metadata import version

    __version__ = version("toolrobot")

# add nullhandler to prevent a default configuration being used if the calling application doesn't set one
logging.getLogger("toolrobot").addHandler(logging.NullHandler())
