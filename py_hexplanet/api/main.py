"""FastAPI main application."""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.biomes import BiomeRule, BiomeSet, default_biome_set
from ..core.dual_tiles import Tile
from ..core.fields import FieldOptions
from ..core.noise import DomainWarpOptions, NoiseOptions
from ..core.planet import Planet, PlanetConfig, PlanetGenerator
from ..core.presentation import COLOR_MODES, tile_color
from ..errors import ConfigurationError, InvariantViolation
from ..utils.logging import configure_logging

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

app = FastAPI(
    title="Hex Planet Generator API",
    description="Geodesic hex/pentagon planets with noise-driven biomes",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class NoiseSettings(BaseModel):
    """Noise parameters shared by all channels."""

    noise_type: str = Field("simplex", description="simplex, simplex_smooth, perlin, value, value_cubic or cellular")
    frequency: float = Field(1.5, gt=0, description="Frequency on the unit sphere")
    offset: Tuple[float, float, float] = Field((0.0, 0.0, 0.0), description="Sample offset")
    fractal_type: str = Field("fbm", description="none, fbm, ridged or ping_pong")
    octaves: int = Field(6, ge=1, le=10, description="Fractal octaves")
    lacunarity: float = Field(2.0, gt=0, le=8.0, description="Fractal lacunarity")
    gain: float = Field(0.5, ge=0, le=1.0, description="Fractal gain")
    weighted_strength: float = Field(0.0, ge=0, le=10.0)
    ping_pong_strength: float = Field(2.0, ge=0, le=10.0)
    domain_warp_enabled: bool = Field(False, description="Warp sample positions")
    domain_warp_amplitude: float = Field(0.3, ge=0)
    domain_warp_frequency: float = Field(1.0, gt=0)
    domain_warp_octaves: int = Field(3, ge=1, le=10)
    cellular_distance: str = Field("euclidean", description="Cellular distance function")
    cellular_return: str = Field("cell_value", description="Cellular return type")
    cellular_jitter: float = Field(1.0, ge=0, le=1.0)

    def to_options(self) -> NoiseOptions:
        return NoiseOptions(
            noise_type=self.noise_type,
            frequency=self.frequency,
            offset=self.offset,
            fractal_type=self.fractal_type,
            octaves=self.octaves,
            lacunarity=self.lacunarity,
            gain=self.gain,
            weighted_strength=self.weighted_strength,
            ping_pong_strength=self.ping_pong_strength,
            domain_warp=DomainWarpOptions(
                enabled=self.domain_warp_enabled,
                amplitude=self.domain_warp_amplitude,
                frequency=self.domain_warp_frequency,
                octaves=self.domain_warp_octaves,
            ),
            cellular_distance=self.cellular_distance,
            cellular_return=self.cellular_return,
            cellular_jitter=self.cellular_jitter,
        )


class FieldSettings(BaseModel):
    """Channel weights and elevation bands."""

    moisture_band: Tuple[float, float] = (0.4, 0.9)
    temperature_band: Tuple[float, float] = (0.5, 1.0)
    polar_axis: Tuple[float, float, float] = (0.0, 1.0, 0.0)


class BiomeRuleModel(BaseModel):
    """One biome rule; omitted bounds leave the channel unconstrained."""

    name: str
    color: str = Field("#33cc33", pattern=r"^#[0-9a-fA-F]{6}$")
    min_height: float = 0.0
    max_height: float = 1.0
    min_moisture: float = 0.0
    max_moisture: float = 1.0
    min_temperature: float = 0.0
    max_temperature: float = 1.0
    extra_ranges: Dict[str, Tuple[float, float]] = Field(default_factory=dict)
    material: Optional[str] = None


class PlanetGenerationRequest(BaseModel):
    """Request to generate a new planet."""

    seed: Optional[str] = Field(None, description="Seed string for reproducible generation")
    subdivisions: Optional[int] = Field(None, ge=0, description="Icosphere subdivision level")
    radius: Optional[float] = Field(None, gt=0, description="Planet radius")
    noise: NoiseSettings = Field(default_factory=NoiseSettings)
    channels: FieldSettings = Field(default_factory=FieldSettings)
    biomes: Optional[List[BiomeRuleModel]] = Field(None, description="Ordered biome rules")
    extra_channels: List[str] = Field(default_factory=list, description="Additional noise channels")
    color_mode: str = Field("biome", description="biome or gradient")


class PlanetSummary(BaseModel):
    """Summary information about a generated planet."""

    id: str
    seed: str
    subdivisions: int
    radius: float
    tile_count: int
    pentagon_count: int
    hexagon_count: int
    color_mode: str
    created_at: datetime
    generation_time_seconds: float


class TileInfo(BaseModel):
    """Geometry, channels and biome of one tile."""

    index: int
    vertex_index: int
    anchor: List[float]
    position: List[float]
    corners: List[List[float]]
    neighbors: List[int]
    channels: Dict[str, float]
    biome: str
    color: str


class TilePage(BaseModel):
    total: int
    offset: int
    limit: int
    tiles: List[TileInfo]


class BiomeStatistics(BaseModel):
    """Biome distribution statistics for a planet."""

    biome_name: str
    color: str
    tile_count: int
    percentage: float
    region_count: int
    avg_height: float
    avg_moisture: float
    avg_temperature: float


@dataclass
class StoredPlanet:
    id: str
    planet: Planet
    color_mode: str
    created_at: datetime


class PlanetStore:
    """Bounded in-memory store; the oldest planet is evicted first."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._planets: "OrderedDict[str, StoredPlanet]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, record: StoredPlanet) -> None:
        with self._lock:
            self._planets[record.id] = record
            while len(self._planets) > self.max_size:
                evicted, _ = self._planets.popitem(last=False)
                logger.info("Evicted planet from store", planet_id=evicted)

    def get(self, planet_id: str) -> Optional[StoredPlanet]:
        with self._lock:
            return self._planets.get(planet_id)

    def list(self) -> List[StoredPlanet]:
        with self._lock:
            return list(self._planets.values())

    def clear(self) -> None:
        with self._lock:
            self._planets.clear()

    def __len__(self) -> int:
        return len(self._planets)


store = PlanetStore(settings.max_stored_planets)


def _summary(record: StoredPlanet) -> PlanetSummary:
    planet = record.planet
    return PlanetSummary(
        id=record.id,
        seed=planet.config.seed,
        subdivisions=planet.config.subdivisions,
        radius=planet.config.radius,
        tile_count=planet.tile_count,
        pentagon_count=planet.pentagon_count,
        hexagon_count=planet.hexagon_count,
        color_mode=record.color_mode,
        created_at=record.created_at,
        generation_time_seconds=round(planet.generation_time_seconds, 4),
    )


def _tile_info(tile: Tile, color_mode: str) -> TileInfo:
    return TileInfo(
        index=tile.index,
        vertex_index=tile.vertex_index,
        anchor=tile.anchor.tolist(),
        position=tile.position.tolist(),
        corners=tile.corners.tolist(),
        neighbors=list(tile.neighbors),
        channels=dict(tile.channels),
        biome=tile.biome.name,
        color=tile_color(tile, color_mode),
    )


def _get_record(planet_id: str) -> StoredPlanet:
    record = store.get(planet_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Planet not found")
    return record


def _build_config(request: PlanetGenerationRequest) -> PlanetConfig:
    if request.biomes is not None:
        biomes = BiomeSet([BiomeRule(**rule.dict()) for rule in request.biomes])
    else:
        biomes = default_biome_set()

    subdivisions = (
        request.subdivisions if request.subdivisions is not None else settings.default_subdivisions
    )
    if subdivisions > settings.max_subdivisions:
        raise ConfigurationError(
            f"Subdivision level {subdivisions} exceeds the maximum of {settings.max_subdivisions}"
        )

    return PlanetConfig(
        subdivisions=subdivisions,
        radius=request.radius if request.radius is not None else settings.default_radius,
        seed=request.seed if request.seed is not None else settings.default_seed,
        noise=request.noise.to_options(),
        fields=FieldOptions(
            moisture_band=request.channels.moisture_band,
            temperature_band=request.channels.temperature_band,
            polar_axis=request.channels.polar_axis,
        ),
        biomes=biomes,
        extra_channels=tuple(request.extra_channels),
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Hex Planet Generator API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "planets": len(store)}


@app.post("/planets/generate", response_model=PlanetSummary)
def generate_planet(request: PlanetGenerationRequest):
    """
    Generate a planet synchronously and keep it in the store.

    Invalid configuration is rejected with 422 before any work is done.
    """
    logger.info("Planet generation requested", request=request.dict())

    if request.color_mode not in COLOR_MODES:
        raise HTTPException(status_code=422, detail=f"Unknown color mode {request.color_mode!r}")

    try:
        config = _build_config(request)
        planet = PlanetGenerator(config).generate()
    except ConfigurationError as e:
        logger.warning("Rejected planet configuration", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    except InvariantViolation as e:
        logger.error("Planet generation failed", error=str(e))
        raise HTTPException(status_code=500, detail="Planet generation failed")

    record = StoredPlanet(
        id=str(uuid.uuid4()),
        planet=planet,
        color_mode=request.color_mode,
        created_at=datetime.utcnow(),
    )
    store.add(record)

    logger.info("Planet stored", planet_id=record.id, tiles=planet.tile_count)
    return _summary(record)


@app.get("/planets", response_model=List[PlanetSummary])
async def list_planets():
    """List stored planets, oldest first."""
    return [_summary(record) for record in store.list()]


@app.get("/planets/{planet_id}", response_model=PlanetSummary)
async def get_planet(planet_id: str):
    """Get summary of a specific planet."""
    return _summary(_get_record(planet_id))


@app.get("/planets/{planet_id}/tiles", response_model=TilePage)
async def get_planet_tiles(
    planet_id: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """Page through the tiles of a planet in tile index order."""
    record = _get_record(planet_id)
    tiles = record.planet.tiles[offset:offset + limit]
    return TilePage(
        total=record.planet.tile_count,
        offset=offset,
        limit=limit,
        tiles=[_tile_info(tile, record.color_mode) for tile in tiles],
    )


@app.get("/planets/{planet_id}/tiles/{tile_index}", response_model=TileInfo)
async def get_planet_tile(planet_id: str, tile_index: int):
    """Get one tile of a planet."""
    record = _get_record(planet_id)
    if not 0 <= tile_index < record.planet.tile_count:
        raise HTTPException(status_code=404, detail="Tile not found")
    return _tile_info(record.planet.tiles[tile_index], record.color_mode)


@app.get("/planets/{planet_id}/biomes", response_model=List[BiomeStatistics])
def get_planet_biomes(planet_id: str):
    """Biome distribution, in biome rule order."""
    record = _get_record(planet_id)
    planet = record.planet

    regions_per_biome: Dict[str, int] = {}
    for region in planet.biome_regions():
        regions_per_biome[region.biome] = regions_per_biome.get(region.biome, 0) + 1

    # Per-biome sums of height, moisture, temperature in one pass over the tiles
    sums: Dict[str, np.ndarray] = {}
    for tile in planet.tiles:
        channels = tile.channels
        totals = sums.setdefault(tile.biome.name, np.zeros(3))
        totals += (channels["height"], channels["moisture"], channels["temperature"])

    colors = {rule.name: rule.color for rule in planet.config.biomes}
    stats = []
    for name, count in planet.biome_statistics().items():
        avg_height, avg_moisture, avg_temperature = sums[name] / count
        stats.append(
            BiomeStatistics(
                biome_name=name,
                color=colors[name],
                tile_count=count,
                percentage=round(100.0 * count / planet.tile_count, 2),
                region_count=regions_per_biome.get(name, 0),
                avg_height=float(avg_height),
                avg_moisture=float(avg_moisture),
                avg_temperature=float(avg_temperature),
            )
        )
    return stats


@app.get("/planets/{planet_id}/rules", response_model=List[Dict])
def get_planet_rules(planet_id: str):
    """Biome rules the planet was classified with, in priority order."""
    record = _get_record(planet_id)
    return record.planet.config.biomes.to_list()


@app.get("/planets/{planet_id}/pick", response_model=TileInfo)
def pick_tile(planet_id: str, x: float, y: float, z: float):
    """Tile under a direction from the planet centre."""
    record = _get_record(planet_id)
    try:
        tile = record.planet.tile_at((x, y, z))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _tile_info(tile, record.color_mode)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
