"""Tests for biome classification."""

import pytest

from py_hexplanet.core.biomes import BiomeClassifier, BiomeRule, BiomeSet, default_biome_set
from py_hexplanet.core.dual_tiles import extract_dual_tiles
from py_hexplanet.core.icosphere import generate_icosphere
from py_hexplanet.errors import ConfigurationError


def channels(height, moisture=0.5, temperature=0.5, **extra):
    values = {"height": height, "moisture": moisture, "temperature": temperature}
    values.update(extra)
    return values


class TestBiomeRule:
    """Test single rule matching."""

    def test_inclusive_bounds(self):
        rule = BiomeRule("Plains", min_height=0.3, max_height=0.6)
        assert rule.matches(channels(0.3))
        assert rule.matches(channels(0.6))
        assert not rule.matches(channels(0.61))

    def test_missing_channel_does_not_match(self):
        rule = BiomeRule("Any")
        assert not rule.matches({"height": 0.5, "moisture": 0.5})

    def test_extra_ranges(self):
        rule = BiomeRule("City", extra_ranges={"population": (0.8, 1.0)})
        assert rule.matches(channels(0.5, population=0.9))
        assert not rule.matches(channels(0.5, population=0.1))
        assert not rule.matches(channels(0.5))

    def test_to_dict(self):
        data = BiomeRule("Ocean", "#0000ff", max_height=0.3).to_dict()
        assert data["name"] == "Ocean"
        assert data["ranges"]["height"] == [0.0, 0.3]


class TestBiomeSet:
    """Test rule set validation and coverage checks."""

    def test_from_dicts(self):
        biome_set = BiomeSet([{"name": "Ocean", "max_height": 0.3}])
        assert isinstance(biome_set.rules[0], BiomeRule)

    def test_empty_set_rejected(self):
        with pytest.raises(ConfigurationError):
            BiomeClassifier(BiomeSet([]))

    def test_inverted_range_rejected(self):
        with pytest.raises(ConfigurationError):
            BiomeClassifier(BiomeSet([BiomeRule("Bad", min_height=0.8, max_height=0.2)]))

    def test_default_set_has_no_gaps(self):
        assert default_biome_set().find_coverage_gaps() == []

    def test_gaps_detected(self):
        biome_set = BiomeSet([BiomeRule("Low", max_height=0.4), BiomeRule("High", min_height=0.6)])
        gaps = biome_set.find_coverage_gaps(resolution=11)
        assert gaps
        assert all(0.4 < gap["height"] < 0.6 for gap in gaps)


class TestBiomeClassifier:
    """Test first-match classification."""

    @pytest.fixture
    def classifier(self):
        return BiomeClassifier(
            BiomeSet(
                [
                    BiomeRule("Ocean", "#0000ff", max_height=0.3),
                    BiomeRule("Coast", "#ffff00", max_height=0.4),
                    BiomeRule("Land", "#00ff00", min_height=0.4, max_height=0.9),
                    BiomeRule("Peak", "#ffffff", min_height=0.95),
                ]
            )
        )

    def test_first_match_wins(self, classifier):
        # Ocean and Coast both contain 0.2
        assert classifier.classify(channels(0.2)).name == "Ocean"
        assert classifier.classify(channels(0.35)).name == "Coast"

    def test_fallback_is_last_rule(self, classifier):
        assert classifier.match(channels(0.92)) is None
        assert classifier.classify(channels(0.92)).name == "Peak"

    def test_default_set_examples(self):
        classifier = BiomeClassifier(default_biome_set())
        assert classifier.classify(channels(0.1)).name == "Deep Ocean"
        assert classifier.classify(channels(0.5, temperature=0.1)).name == "Ice Cap"
        assert classifier.classify(channels(0.5, moisture=0.8, temperature=0.8)).name == "Tropical Rainforest"
        assert classifier.classify(channels(0.8)).name == "Mountain"
        assert classifier.classify(channels(1.0)).name == "Snow"

    def test_classify_tiles(self, classifier):
        mesh = generate_icosphere(1)
        tiles = extract_dual_tiles(mesh.vertices, mesh.faces)
        for tile in tiles:
            tile.channels = channels(0.1 if tile.anchor[1] > 0 else 0.5)

        assigned = classifier.classify_tiles(tiles)

        assert len(assigned) == len(tiles)
        for tile in tiles:
            expected = "Ocean" if tile.anchor[1] > 0 else "Land"
            assert tile.biome.name == expected


class TestBiomeStatisticsAndRegions:
    """Test aggregate views over classified tiles."""

    @pytest.fixture
    def tiles(self):
        mesh = generate_icosphere(2)
        tiles = extract_dual_tiles(mesh.vertices, mesh.faces)
        for tile in tiles:
            tile.channels = channels(0.1 if tile.anchor[0] > 0.2 else 0.6)
        return tiles

    @pytest.fixture
    def classifier(self):
        return BiomeClassifier(
            BiomeSet([BiomeRule("Unused", min_height=0.9), BiomeRule("Sea", max_height=0.3), BiomeRule("Land")])
        )

    def test_statistics(self, classifier, tiles):
        classifier.classify_tiles(tiles)
        stats = classifier.get_biome_statistics(tiles)

        assert list(stats) == ["Sea", "Land"]
        assert sum(stats.values()) == len(tiles)

    def test_unclassified_tiles_rejected(self, classifier, tiles):
        with pytest.raises(ValueError):
            classifier.generate_biome_regions(tiles)

    def test_regions_partition_tiles(self, classifier, tiles):
        classifier.classify_tiles(tiles)
        regions = classifier.generate_biome_regions(tiles)

        covered = set()
        for region in regions:
            assert not covered & region.tiles
            covered |= region.tiles
            assert {tiles[i].biome.name for i in region.tiles} == {region.biome}
            assert region.center_tile in region.tiles
            assert region.area > 0
        assert covered == set(range(len(tiles)))

        assert [min(r.tiles) for r in regions] == sorted(min(r.tiles) for r in regions)

    def test_adjacent_same_biome_share_region(self, classifier, tiles):
        classifier.classify_tiles(tiles)
        regions = classifier.generate_biome_regions(tiles)
        region_of = {i: r.id for r in regions for i in r.tiles}

        for tile in tiles:
            for n in tile.neighbors:
                if tiles[n].biome is tile.biome:
                    assert region_of[n] == region_of[tile.index]

    def test_single_biome_single_region(self, tiles):
        classifier = BiomeClassifier(BiomeSet([BiomeRule("Everything")]))
        classifier.classify_tiles(tiles)
        regions = classifier.generate_biome_regions(tiles)

        assert len(regions) == 1
        assert regions[0].area == pytest.approx(sum(t.area for t in tiles))
