# Overridden by the installed distribution's metadata when available
__version__ = "1.0.0"
