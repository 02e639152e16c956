"""Category catalogue shipped with the package."""
import json
from importlib import resources
from typing import Dict, List

from cardflow.utils.exceptions import ConfigError


def load_categories() -> List[Dict[str, str]]:
    """Load the category definitions from resources/categories.json."""
    try:
        text = resources.files("cardflow.resources").joinpath("categories.json").read_text(encoding="utf-8")
        return json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load categories: {e}")


def category_slugs() -> List[str]:
    """Return the known category slugs in catalogue order."""
    return [category["slug"] for category in load_categories()]
