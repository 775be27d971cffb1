"""YotoForge - background playlist jobs and AI icon recommendations for Yoto cards."""

__version__ = "0.1.0"
