"""SolarSnoop: solar power-balancing nudges for household installations."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("solarsnoop")
except Exception:
    __version__ = "dev"
