"""Tests for catalog_loader and game_config_loader."""

from pathlib import Path

import pytest

from idlesim.engine.catalog import Catalog
from idlesim.loaders.catalog_loader import _CATEGORIES, load_catalog
from idlesim.loaders.game_config_loader import GameConfig, load_game_config
from idlesim.models.items import RecipeKind

# Path to the real config directory
CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class TestLoadCatalogFromConfigDir:
    """Verify that load_catalog() works with the shipped YAML files."""

    def test_config_directory_exists(self):
        assert CONFIG_DIR.is_dir(), f"Config directory not found: {CONFIG_DIR}"

    @pytest.mark.parametrize("category", sorted(_CATEGORIES))
    def test_category_file_exists(self, category):
        f = CONFIG_DIR / f"{category}.yaml"
        assert f.exists(), f"Missing config file: {f}"

    def test_every_category_populated(self):
        data = load_catalog(CONFIG_DIR)
        for _, (attr, _) in _CATEGORIES.items():
            assert getattr(data, attr), f"No {attr} loaded"

    def test_known_entries(self):
        catalog = Catalog()
        catalog.load(load_catalog(CONFIG_DIR))

        ore = catalog.resource("ferrite-ore")
        assert ore.base_time == 3
        assert ore.xp_reward == 5
        assert ore.respawn_time == 1

        mace = catalog.recipe("ferrite-mace", RecipeKind.ENGINEER)
        assert mace.ingredients == {"ferrite-ingot": 3}
        assert mace.equipment.attack_type == "bash"
        assert catalog.equipment("ferrite-mace").damage == 4
        assert catalog.recipe("ferrite-mace", RecipeKind.SMELT) is None

        cultist = catalog.enemy("chaos-cultist")
        assert cultist.health == 12
        assert [a.name for a in cultist.attacks] == ["Wild Strike", "Dark Chant"]
        assert cultist.affinity["cut"] == 90

        logging_station = catalog.building("logging-station")
        assert logging_station.production.rate == 12
        assert catalog.building("city-hall").unique

        assert catalog.seed("apples-seed").crop_yield == 1
        assert catalog.planet("agri-prime").contact_cost_gold == 100
        assert catalog.villager_type("farmer").efficiency == 1.5

    def test_item_names(self):
        catalog = Catalog()
        catalog.load(load_catalog(CONFIG_DIR))
        assert catalog.item_name("ferrite-ore") == "Ferrite Ore"
        assert catalog.item_name("apples-seed") == "Apple Seeds"
        assert catalog.item_name("apples") == "Apples"
        assert catalog.item_name("mystery-box") == "mystery-box"


class TestLoadCatalogEdgeCases:
    def test_missing_directory_is_empty(self, tmp_path):
        data = load_catalog(tmp_path / "nope")
        catalog = Catalog()
        catalog.load(data)
        assert len(catalog) == 0

    def test_missing_files_skipped(self, tmp_path):
        (tmp_path / "planets.yaml").write_text(
            "terra:\n  name: Terra\n  contact_cost_gold: 5\n", encoding="utf-8")
        data = load_catalog(tmp_path)
        assert [p.pid for p in data.planets] == ["terra"]
        assert data.resources == []

    def test_malformed_entry_skipped(self, tmp_path):
        (tmp_path / "seeds.yaml").write_text(
            "no-crop:\n  name: Broken\n"
            "carrot-seed:\n  crop_id: carrots\n  level_required: 40\n"
            "scalar-entry: 5\n",
            encoding="utf-8")
        data = load_catalog(tmp_path)
        assert [s.sid for s in data.seeds] == ["carrot-seed"]

    def test_seed_defaults_scale_with_level(self, tmp_path):
        (tmp_path / "seeds.yaml").write_text(
            "carrot-seed:\n  crop_id: carrots\n  level_required: 40\n", encoding="utf-8")
        seed = load_catalog(tmp_path).seeds[0]
        assert seed.grow_time == 200
        assert seed.xp_reward == 80
        assert seed.crop_yield == 3

    def test_bad_recipe_kind_skipped(self, tmp_path):
        (tmp_path / "recipes.yaml").write_text(
            "odd:\n  kind: brew\n"
            "ferrite-ingot:\n  kind: smelt\n  ingredients: {ferrite-ore: 2}\n",
            encoding="utf-8")
        data = load_catalog(tmp_path)
        assert [r.rid for r in data.recipes] == ["ferrite-ingot"]


class TestGameConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_game_config(str(tmp_path / "game.yaml"))
        assert cfg == GameConfig()
        assert cfg.max_catchup_cycles == 10_000
        assert cfg.base_gather_limit == 10

    def test_repo_config_loads(self):
        cfg = load_game_config(str(CONFIG_DIR / "game.yaml"))
        assert cfg.task_tick_ms == 100
        assert set(cfg.skill_veterancy_bonuses) == {"salvaging", "smelting", "engineering"}

    def test_partial_override(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text(
            "search_delay_ms: 5000\n"
            "starting_village:\n  workers: 4\n  unknown_key: 1\n",
            encoding="utf-8")
        cfg = load_game_config(str(path))
        assert cfg.search_delay_ms == 5000
        assert cfg.starting_village.workers == 4
        assert cfg.starting_village.resources["wood"] == 50.0
        assert cfg.player_max_health == 100

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text("no_such_setting: 3\nrest_port: 9000\n", encoding="utf-8")
        cfg = load_game_config(str(path))
        assert cfg.rest_port == 9000
        assert not hasattr(cfg, "no_such_setting")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text("", encoding="utf-8")
        assert load_game_config(str(path)) == GameConfig()
