"""utfgrid - UTFGrid interactivity tile generator for Web Mercator maps."""

__version__ = "0.1.0"
