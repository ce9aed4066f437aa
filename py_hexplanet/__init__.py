"""
py-hexplanet: geodesic hex/pentagon planets with noise-driven biomes.
"""

__version__ = "0.1.0"
