import pytest

from bijective_map_settings import Settings


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Points the settings file into a temporary directory and restores the field values afterwards."""
    monkeypatch.setattr(Settings, "__persistence_file_path__", tmp_path / "store" / "bijective_map_settings.json")
    saved = dict(Settings.__persistence_dict__)
    yield Settings
    Settings.__persistence_dict__.clear()
    Settings.__persistence_dict__.update(saved)
