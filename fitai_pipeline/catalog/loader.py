# fitai_pipeline/catalog/loader.py
"""Reference catalog loading from JSON or YAML documents."""

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Catalog, CatalogDocument, CatalogKind

logger = logging.getLogger(__name__)


def load_catalog(path: str | Path, expected_kind: CatalogKind | None = None) -> Catalog:
    """
    Load and validate a catalog document.

    Args:
        path: .json, .yaml or .yml file with {version, kind, items}
        expected_kind: Reject the document if it holds a different kind

    Returns:
        Catalog instance

    Raises:
        ValueError: If the file is unreadable, malformed, or of the wrong kind
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Could not read catalog '{path}': {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Catalog '{path}' is not valid {path.suffix.lstrip('.')}: {e}") from e

    try:
        document = CatalogDocument.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Catalog '{path}' failed validation: {e}") from e

    if expected_kind is not None and document.kind != expected_kind:
        raise ValueError(
            f"Catalog '{path}' holds {document.kind.value} items, expected {expected_kind.value}"
        )

    catalog = Catalog.from_document(document)
    missing_assets = sum(1 for item in catalog if not item.has_asset)
    if missing_assets:
        logger.warning(
            f"Catalog {path.name} v{catalog.version}: {missing_assets} item(s) without asset_ref"
        )
    logger.info(f"Loaded {catalog!r} from {path}")
    return catalog
