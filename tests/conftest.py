"""
Shared pytest fixtures for sitefactory tests.

This module provides:
- Settings and instance-registry cleanup for test isolation
- Config file writers backed by ``tmp_path``
- A ``music`` site: a Factory on a temporary SQLite database with the
  sample classes from ``_support.music`` and the templates beside them

Usage:
    def test_something(factory, albums):
        assert factory.count_all("album") == len(albums)
"""

import sys
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

# Ensure sitefactory and the test support package are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from _support import TEMPLATE_DIR  # noqa: E402

from sitefactory.core.config.settings import clear_settings_cache  # noqa: E402
from sitefactory.framework.factory import Factory  # noqa: E402
from sitefactory.framework.instances import registry as instance_registry  # noqa: E402

MUSIC_CLASSES = [
    "_support.music.Album",
    "_support.music.Artist",
    "_support.music.Genre",
    "_support.music.Track",
]


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Read settings afresh and keep tenant variables out of the environment."""
    for name in ("_SITE_ID", "SITE_NAME", "SITEFACTORY_GLOBAL_CONFIG", "SITEFACTORY_SITE_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def clean_instances() -> Generator[None, None, None]:
    """Forget every registered Factory after each test."""
    yield
    instance_registry.clear()


# =============================================================================
# Config Files
# =============================================================================


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """
    Write a config file under ``tmp_path`` and return its path.

        path = write_config("site.conf", "db_name = music")
    """

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text.strip() + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def site_files(tmp_path: Path, write_config: Callable[..., Path]) -> tuple[Path, Path]:
    """Global and site config files for the ``music`` site."""
    classes = "\n".join(f"class = {name}" for name in MUSIC_CLASSES)
    global_conf = write_config(
        "global.conf",
        f"""
# shared by every site
{classes}
template_dir = {TEMPLATE_DIR}
refresh_interval = 0
error_page = error.html
permitted_view = about
mime_types txt = text/plain
""",
    )
    site_conf = write_config(
        "site.conf",
        f"""
site_title = Music
db_type = SQLite
db_name = {tmp_path / "music.db"}
url = http://music.example.com/
""",
    )
    return global_conf, site_conf


# =============================================================================
# Site Fixtures
# =============================================================================


@pytest.fixture
def factory(site_files: tuple[Path, Path]) -> Generator[Factory, None, None]:
    """Factory for the ``music`` site, tables created, no rows."""
    site = Factory(*map(str, site_files), site_id="music")
    site.create_tables()
    yield site
    site.close()


@pytest.fixture
def albums(factory: Factory) -> dict[str, Any]:
    """
    A few rows in every table.

    Returns the created objects by a short name.
    """
    rock = factory.create("genre", name="Rock")
    jazz = factory.create("genre", name="Jazz")
    hendrix = factory.create("artist", name="Jimi Hendrix")
    davis = factory.create("artist", name="Miles Davis")
    rows: dict[str, Any] = {
        "rock": rock,
        "jazz": jazz,
        "hendrix": hendrix,
        "davis": davis,
        "axis": factory.create("album", title="Axis", year=1967, artist_id=hendrix.id, genre_id=rock.id),
        "ladyland": factory.create("album", title="Electric Ladyland", year=1968, artist_id=hendrix.id, genre_id=rock.id),
        "kind_of_blue": factory.create("album", title="Kind of Blue", year=1959, artist_id=davis.id, genre_id=jazz.id),
    }
    rows["little_wing"] = factory.create("track", title="Little Wing", position=6, album_id=rows["axis"].id)
    return rows
