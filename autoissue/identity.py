"""autoissue identity: name, version and banner shown by the CLI."""

__codename__ = "AUTOISSUE"
__version__ = "0.1.0"
__tagline__ = "Say it. Confirm it. Ship the issue."

BANNER = r"""
   ___       __       ____
  / _ |__ __/ /____  /  _/__ ___ __ _____
 / __ / // / __/ _ \_/ /(_-<(_-</ // / -_)
/_/ |_\_,_/\__/\___/___/___/___/\_,_/\__/
"""
