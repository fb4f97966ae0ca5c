__version__ = "1.0.0"
__version_info__ = tuple(int(p) for p in __version__.split("."))
