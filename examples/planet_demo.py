#!/usr/bin/env python3
"""
Example generating a planet and plotting its channels and biomes.
"""

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from py_hexplanet.core import GeometryCollector, PlanetConfig, PlanetGenerator
from py_hexplanet.core.palette import hex_to_rgb


def lat_lon(anchors: np.ndarray):
    """Latitude/longitude in degrees, +Y as the polar axis."""
    lat = np.degrees(np.arcsin(np.clip(anchors[:, 1], -1, 1)))
    lon = np.degrees(np.arctan2(anchors[:, 2], anchors[:, 0]))
    return lat, lon


def main():
    config = PlanetConfig(subdivisions=4, seed="planet_demo", extra_channels=("population",))

    print(f"Generating planet with seed {config.seed!r}...")
    collector = GeometryCollector()
    planet = PlanetGenerator(config).build(collector)

    print(f"Tiles: {planet.tile_count} ({planet.pentagon_count} pentagons, {planet.hexagon_count} hexagons)")
    print(f"Generated in {planet.generation_time_seconds:.2f}s")

    anchors = np.array([tile.anchor for tile in planet.tiles])
    lat, lon = lat_lon(anchors)

    fig = plt.figure(figsize=(14, 10))

    # Channel maps
    for i, (name, cmap) in enumerate(
        [("height", "terrain"), ("moisture", "YlGnBu"), ("temperature", "RdBu_r")]
    ):
        ax = fig.add_subplot(2, 2, i + 1)
        scatter = ax.scatter(lon, lat, c=planet.channels[name], cmap=cmap, s=6, vmin=0, vmax=1)
        ax.set_title(name.capitalize())
        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        plt.colorbar(scatter, ax=ax)

    # Biome globe
    ax = fig.add_subplot(2, 2, 4, projection="3d")
    polygons = [tile.corners for tile in planet.tiles]
    colors = [hex_to_rgb(geometry.color) for geometry in collector.tiles]
    ax.add_collection3d(Poly3DCollection(polygons, facecolors=colors, edgecolors="none"))
    limit = planet.radius
    ax.set_xlim(-limit, limit)
    ax.set_ylim(-limit, limit)
    ax.set_zlim(-limit, limit)
    ax.set_box_aspect((1, 1, 1))
    ax.set_axis_off()
    ax.set_title("Biomes")

    plt.tight_layout()
    plt.savefig("planet_demo.png", dpi=150)
    print("\nPlanet visualization saved to planet_demo.png")

    print("\nBiome distribution:")
    for name, count in planet.biome_statistics().items():
        print(f"  {name}: {count} tiles ({count / planet.tile_count * 100:.1f}%)")

    regions = planet.biome_regions()
    print(f"\nContiguous biome regions: {len(regions)}")
    for region in sorted(regions, key=lambda r: r.area, reverse=True)[:5]:
        print(f"  {region.biome}: {len(region.tiles)} tiles, centre tile {region.center_tile}")


if __name__ == "__main__":
    main()
