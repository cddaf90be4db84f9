"""streamwarp - channel playlist scraper."""

__version__ = "0.3.0"
