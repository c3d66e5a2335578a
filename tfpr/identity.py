"""tfpr identity strings."""

__version__ = "0.3.0"
__codename__ = "TFPR"
__tagline__ = "Plan in the PR. Apply from the PR."

BANNER = r"""
 _____ _____ ____  ____
|_   _|  ___|  _ \|  _ \
  | | | |_  | |_) | |_) |
  | | |  _| |  __/|  _ <
  |_| |_|   |_|   |_| \_\
"""
