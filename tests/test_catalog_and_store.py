# tests/test_catalog_and_store.py
import json

from storefront.services.catalog_service import CatalogService
from storefront.services.session_store import MemorySessionStore


def test_catalog_defaults_and_lookup(catalog, assets_root):
    design = catalog.get_design("x")
    assert design.shape == "GUITAR"
    assert design.formats == frozenset({"SVG", "PDF"})
    assert design.asset_paths["SVG"] == "x/x.svg"
    assert catalog.offers("x", "svg")
    assert not catalog.offers("x", "PNG")
    assert catalog.resolve_asset("x", "SVG") == (assets_root / "x" / "x.svg").resolve()
    assert catalog.resolve_asset("z", "PDF") is None
    assert catalog.resolve_asset("nope", "SVG") is None


def test_catalog_reads_explicit_file_paths(tmp_path):
    (tmp_path / "assets" / "folder").mkdir(parents=True)
    (tmp_path / "assets" / "folder" / "art.svg").write_text("<svg/>")
    doc = [{"id": 7, "artist": "A", "song": "S", "shape": "piano", "price": 2.5,
            "formats": ["svg"], "files": {"svg": "folder/art.svg"}}]
    path = tmp_path / "designs.json"
    path.write_text(json.dumps(doc))

    catalog = CatalogService.load(path, tmp_path / "assets")
    assert catalog.get_design("7").shape == "PIANO"
    assert catalog.resolve_asset("7", "SVG").name == "art.svg"


def test_catalog_refuses_paths_outside_root(tmp_path):
    (tmp_path / "assets").mkdir()
    (tmp_path / "secret.svg").write_text("x")
    doc = {"designs": [{"id": "e", "shape": "GUITAR", "formats": ["SVG"], "files": {"svg": "../secret.svg"}}]}
    path = tmp_path / "designs.json"
    path.write_text(json.dumps(doc))

    assert CatalogService.load(path, tmp_path / "assets").resolve_asset("e", "SVG") is None


def test_missing_catalog_file_is_empty(tmp_path):
    assert len(CatalogService.load(tmp_path / "none.json", tmp_path)) == 0


def test_memory_store_expires_and_isolates():
    now = [0.0]
    store = MemorySessionStore(ttl=10, clock=lambda: now[0])
    store.set("s", {"items": [1]})

    data = store.get("s")
    data["items"].append(2)
    assert store.get("s") == {"items": [1]}

    now[0] = 11
    assert store.get("s") is None
    store.delete("s")
