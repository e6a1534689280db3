"""
Inventory matching for plugins, themes and WordPress core.

Remote listings identify plugins inconsistently (path, alternate path key,
slug, display name). The rules here locate the item an update targets so its
version can be read before and after the update.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .models import InventoryItem


@dataclass
class ItemMatch:
    """A located inventory item and the rule that found it."""

    item: dict
    rule: str
    inventory: InventoryItem


RULE_EXACT = "exact"
RULE_PLUGIN_FILE = "plugin_file"
RULE_UPDATES_CROSS_REFERENCE = "updates_cross_reference"
RULE_DIRECTORY_NAME = "directory_name"
RULE_PATH_CONTAINS = "path_contains"
RULE_SLUG = "slug"


def as_item_list(data: Any, key: str) -> list[dict]:
    """
    Extract a list of item dicts from a listing response.

    Accepts plain arrays and ``{<key>: [...]}`` wrappers; anything else
    yields an empty list.
    """
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _normalize(text: str) -> str:
    return text.lower().replace("-", "").replace("_", "").replace(" ", "")


def plugin_slug(path: str) -> str:
    """'dir/file.php' -> 'dir'; 'file.php' -> 'file'."""
    if "/" in path:
        return path.split("/", 1)[0]
    if path.endswith(".php"):
        return path[: -len(".php")]
    return path


def _plugin_path(item: dict) -> str:
    return _text(item.get("plugin")) or _text(item.get("plugin_file"))


def _first(items: list[dict], predicate: Callable[[dict], bool]) -> Optional[dict]:
    for item in items:
        if predicate(item):
            return item
    return None


def find_plugin(
    target: str,
    plugins: list[dict],
    updates: Optional[Any] = None,
) -> Optional[ItemMatch]:
    """
    Locate a plugin in a listing.

    Rules are tried in order across the whole listing, so an exact match
    always wins over a fuzzy one:

    1. exact ``plugin``, ``name`` or ``slug``
    2. exact ``plugin_file``
    3. the updates listing maps ``target`` to a display name found here
    4. the target's directory name appears in the display name
    5. substring containment between target and item path
    6. equal slugs once ``/file.php`` is stripped

    Args:
        target: Plugin identifier, usually 'directory/file.php'
        plugins: Plugin dicts from the listing
        updates: Optional updates payload (dict with 'plugins' or a list)

    Returns:
        The match, or None when the plugin cannot be located
    """
    if not target:
        return None

    def exact(item: dict) -> bool:
        return target in (
            _text(item.get("plugin")),
            _text(item.get("name")),
            _text(item.get("slug")),
        )

    def plugin_file(item: dict) -> bool:
        return _text(item.get("plugin_file")) == target

    update_names = {
        _text(entry.get("name"))
        for entry in as_item_list(updates, "plugins")
        if target in (_text(entry.get("plugin")), _text(entry.get("plugin_file")))
    }
    update_names.discard("")

    def cross_reference(item: dict) -> bool:
        return _text(item.get("name")) in update_names

    directory = _normalize(target.split("/", 1)[0]) if "/" in target else ""

    def directory_name(item: dict) -> bool:
        name = _normalize(_text(item.get("name")))
        return bool(directory) and bool(name) and directory in name

    def path_contains(item: dict) -> bool:
        path = _plugin_path(item)
        return bool(path) and (target in path or path in target)

    target_slug = plugin_slug(target)

    def slug(item: dict) -> bool:
        path = _plugin_path(item) or _text(item.get("slug"))
        return bool(path) and plugin_slug(path) == target_slug

    rules = (
        (RULE_EXACT, exact),
        (RULE_PLUGIN_FILE, plugin_file),
        (RULE_UPDATES_CROSS_REFERENCE, cross_reference),
        (RULE_DIRECTORY_NAME, directory_name),
        (RULE_PATH_CONTAINS, path_contains),
        (RULE_SLUG, slug),
    )
    for rule, predicate in rules:
        item = _first(plugins, predicate)
        if item is not None:
            return ItemMatch(item=item, rule=rule, inventory=InventoryItem.from_plugin(item))
    return None


def find_theme(target: str, themes: list[dict]) -> Optional[ItemMatch]:
    """Locate a theme by stylesheet, then slug, then display name."""
    if not target:
        return None
    for rule, key in ((RULE_EXACT, "stylesheet"), (RULE_SLUG, "slug"), (RULE_EXACT, "name")):
        item = _first(themes, lambda t: _text(t.get(key)) == target)
        if item is not None:
            return ItemMatch(item=item, rule=rule, inventory=InventoryItem.from_theme(item))
    return None


def core_version(status: Any) -> Optional[str]:
    """WordPress core version from a status payload."""
    if not isinstance(status, dict):
        return None
    version = status.get("wordpress_version") or status.get("version")
    if not version and isinstance(status.get("wordpress"), dict):
        version = status["wordpress"].get("version") or status["wordpress"].get("current_version")
    return str(version) if version else None
