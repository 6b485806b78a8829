# storefront/services/catalog_service.py
import json
from decimal import Decimal
from pathlib import Path
from typing import Dict, List

from storefront.domain.schemas import Design
from storefront.utils.settings import CATALOG_PATH, ASSETS_ROOT
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogService:
    """
    Read-only design catalog, loaded once from a JSON document:

        {"designs": [{"id": ..., "artist": ..., "song": ..., "shape": "GUITAR",
                      "price": 3.00, "formats": ["SVG", "PNG"],
                      "files": {"svg": "<folder>/<folder>.svg", ...}}]}

    Asset paths are relative to the assets root. A design without an explicit
    path for a format falls back to <id>/<id>.<format>.
    Shared across requests without locking; nothing mutates it after load.
    """

    def __init__(self, designs: Dict[str, Design], assets_root: str | Path = ASSETS_ROOT):
        self._designs = designs
        self.assets_root = Path(assets_root)

    @classmethod
    def load(cls, path: str | Path = CATALOG_PATH, assets_root: str | Path = ASSETS_ROOT) -> "CatalogService":
        path = Path(path)
        if not path.exists():
            logger.warning(f"Catalog file {path} not found, starting with an empty catalog")
            return cls({}, assets_root)

        raw = json.loads(path.read_text(encoding="utf-8"))
        entries = raw.get("designs", []) if isinstance(raw, dict) else raw
        designs = {}
        for entry in entries:
            design = cls._parse(entry)
            designs[design.id] = design

        logger.info(f"Loaded {len(designs)} designs from {path}")
        return cls(designs, assets_root)

    @staticmethod
    def _parse(entry: dict) -> Design:
        design_id = str(entry["id"])
        formats = {str(f).upper() for f in entry.get("formats", [])}
        given = entry.get("asset_paths") or entry.get("assetPaths") or entry.get("files") or {}
        asset_paths = {str(k).upper(): str(v) for k, v in given.items()}
        for fmt in formats:
            asset_paths.setdefault(fmt, f"{design_id}/{design_id}.{fmt.lower()}")

        return Design(
            id=design_id,
            artist=entry.get("artist", ""),
            song=entry.get("song", ""),
            shape=str(entry.get("shape", "GUITAR")).upper(),
            price=Decimal(str(entry.get("price", "3.00"))),
            formats=frozenset(formats),
            asset_paths=asset_paths,
        )

    def get_design(self, design_id: str) -> Design | None:
        return self._designs.get(design_id)

    def list_designs(self) -> List[Design]:
        return list(self._designs.values())

    def offers(self, design_id: str, format: str) -> bool:
        design = self.get_design(design_id)
        return design is not None and format.upper() in design.formats

    def resolve_asset(self, design_id: str, format: str) -> Path | None:
        """On-disk file for (design, format), or None when it is not there."""
        design = self.get_design(design_id)
        if design is None:
            return None
        rel = design.asset_paths.get(format.upper())
        if not rel:
            return None

        path = (self.assets_root / rel).resolve()
        root = self.assets_root.resolve()
        if root not in path.parents:
            logger.warning(f"Asset path for {design_id}/{format} escapes the assets root: {rel}")
            return None
        return path if path.is_file() else None

    def __len__(self) -> int:
        return len(self._designs)
