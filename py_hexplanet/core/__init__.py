"""
Core planet generation functionality.
"""

from .icosphere import IcosphereMesh, generate_icosphere
from .dual_tiles import Tile, extract_dual_tiles
from .noise import NoiseField, NoiseOptions, DomainWarpOptions
from .fields import FieldSampler, FieldOptions, build_noise_fields
from .biomes import BiomeRule, BiomeSet, BiomeClassifier, default_biome_set
from .presentation import GeometryCollector, build_tile_geometry, build_planet_surface
from .planet import Planet, PlanetConfig, PlanetGenerator, generate_planet

__all__ = ['IcosphereMesh', 'generate_icosphere',
           'Tile', 'extract_dual_tiles',
           'NoiseField', 'NoiseOptions', 'DomainWarpOptions',
           'FieldSampler', 'FieldOptions', 'build_noise_fields',
           'BiomeRule', 'BiomeSet', 'BiomeClassifier', 'default_biome_set',
           'GeometryCollector', 'build_tile_geometry', 'build_planet_surface',
           'Planet', 'PlanetConfig', 'PlanetGenerator', 'generate_planet']
