from decimal import Decimal
from pathlib import Path
import json

from catalog_checker.config import CATEGORY_BACKGROUND_COLORS, Settings, apply_overrides, load_settings
from catalog_checker.infrastructure.storage.settings_store import ENV_VAR, load_overrides, resolve_path, save_overrides


def test_save_and_load_overrides(tmp_path: Path):
    path = tmp_path / "catalog_settings.json"
    merged = save_overrides({"Top-N": 3, "flat_range": [30, 60]}, path=path)
    assert merged["top_n"] == 3
    assert json.loads(path.read_text()) == {"flat_range": [30, 60], "top_n": 3}

    merged = save_overrides({"top_n": 8}, path=path)
    assert merged == {"flat_range": [30, 60], "top_n": 8}
    assert load_overrides(path=path)["top_n"] == 8


def test_missing_or_corrupt_file_gives_no_overrides(tmp_path: Path):
    assert load_overrides(path=tmp_path / "absent.json") == {}
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{", encoding="utf-8")
    assert load_overrides(path=corrupt) == {}


def test_env_var_selects_settings_file(tmp_path: Path, monkeypatch):
    path = tmp_path / "from_env.json"
    monkeypatch.setenv(ENV_VAR, str(path))
    assert resolve_path() == path


def test_settings_apply_known_overrides(tmp_path: Path):
    path = tmp_path / "catalog_settings.json"
    save_overrides(
        {
            "discount_target_count": 50,
            "high_value_threshold": "150",
            "background_colors": {"Snacks_Drinks": 1},
            "no_such_setting": True,
        },
        path=path,
    )

    settings = load_settings(path)

    assert settings.discount_target_count == 50
    assert settings.high_value_threshold == Decimal("150")
    assert settings.background_colors == {"snacks_drinks": 1}
    assert settings.flat_range == (20, 100)


def test_invalid_override_keeps_default():
    settings = apply_overrides(Settings(), {"top_n": "many", "window_days": [2, 9]})

    assert settings.top_n == 5
    assert settings.window_days == (2, 9)


def test_default_settings_match_storefront_mix():
    settings = Settings()

    assert settings.bestseller_undiscounted == 8
    assert settings.background_colors == CATEGORY_BACKGROUND_COLORS
    assert settings.price_bucket_bounds == (50, 100, 200, 500)


def test_image_url_template_override_needs_path_placeholder():
    custom = "https://cdn.example.com/{path}"

    assert apply_overrides(Settings(), {"image_url_template": custom}).image_url_template == custom
    assert apply_overrides(Settings(), {"image_url_template": "https://cdn.example.com/"}).image_url_template == (
        Settings().image_url_template
    )
