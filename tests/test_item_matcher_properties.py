"""
Property-based tests for the Item Matcher module.

Uses Hypothesis to check that plugins, themes and the core version are located
in remote listings no matter which identifying key the listing uses.
"""

import string

from hypothesis import given, settings
from hypothesis import strategies as st

from wp_remote_manager.item_matcher import (
    RULE_DIRECTORY_NAME,
    RULE_EXACT,
    RULE_PATH_CONTAINS,
    RULE_PLUGIN_FILE,
    RULE_SLUG,
    RULE_UPDATES_CROSS_REFERENCE,
    as_item_list,
    core_version,
    find_plugin,
    find_theme,
    plugin_slug,
)
from wp_remote_manager.models import UNKNOWN_VERSION, InventoryItem


slug_strategy = st.text(alphabet=string.ascii_lowercase + "-", min_size=3, max_size=20).filter(
    lambda s: s[0] != "-" and s[-1] != "-"
)
version_strategy = st.builds(
    lambda a, b, c: f"{a}.{b}.{c}",
    st.integers(min_value=0, max_value=20),
    st.integers(min_value=0, max_value=20),
    st.integers(min_value=0, max_value=20),
)


class TestPluginFileMatchProperty:
    """
    Property-based tests for listings that only carry ``plugin_file``.
    """

    @given(directory=slug_strategy, filename=slug_strategy, version=version_strategy)
    @settings(max_examples=100)
    def test_plugin_file_only_listing_is_matched(
        self,
        directory: str,
        filename: str,
        version: str,
    ) -> None:
        """
        *For any* plugin reported only under ``plugin_file`` (no ``plugin``
        key), the matcher SHALL locate it and yield its version.
        """
        target = f"{directory}/{filename}.php"
        plugins = [
            {"plugin_file": "other_plugin/other.php", "name": "Zzz", "version": "0.1"},
            {"plugin_file": target, "name": "Qqq", "version": version},
        ]

        match = find_plugin(target, plugins)

        assert match is not None
        assert match.item["version"] == version
        assert match.rule in (RULE_PLUGIN_FILE, RULE_PATH_CONTAINS)
        assert match.inventory.identifier == target
        assert match.inventory.version == version
        assert match.inventory.name == "Qqq"

    def test_plugin_file_rule_is_reported(self) -> None:
        plugins = [{"plugin_file": "akismet/akismet.php", "name": "Akismet Anti-spam", "version": "5.3"}]
        match = find_plugin("akismet/akismet.php", plugins)
        assert match is not None
        assert match.rule == RULE_PLUGIN_FILE


class TestPluginRulePriorityProperty:
    """
    Tests for the ordered plugin matching rules.
    """

    def test_exact_path(self) -> None:
        plugins = [
            {"plugin": "woocommerce-extra/woocommerce.php", "name": "Extra", "version": "1.0"},
            {"plugin": "woocommerce/woocommerce.php", "name": "WooCommerce", "version": "8.0"},
        ]
        match = find_plugin("woocommerce/woocommerce.php", plugins)
        assert match.rule == RULE_EXACT
        assert match.item["version"] == "8.0"

    def test_exact_beats_earlier_fuzzy_candidate(self) -> None:
        """An exact match later in the listing wins over a fuzzy one earlier."""
        plugins = [
            {"plugin": "seo/seo.php", "name": "SEO Pro", "version": "1.0"},
            {"plugin": "seo/seo-lite.php", "name": "SEO Lite", "version": "2.0"},
        ]
        match = find_plugin("seo/seo-lite.php", plugins)
        assert match.item["version"] == "2.0"

    def test_exact_name_and_slug(self) -> None:
        plugins = [{"name": "Hello Dolly", "slug": "hello-dolly", "version": "1.7"}]
        assert find_plugin("Hello Dolly", plugins).rule == RULE_EXACT
        assert find_plugin("hello-dolly", plugins).rule == RULE_EXACT

    def test_updates_cross_reference(self) -> None:
        plugins = [{"name": "Yoast SEO", "version": "21.0"}]
        updates = {"plugins": [{"plugin": "wordpress-seo/wp-seo.php", "name": "Yoast SEO"}]}
        match = find_plugin("wordpress-seo/wp-seo.php", plugins, updates)
        assert match.rule == RULE_UPDATES_CROSS_REFERENCE
        assert match.item["version"] == "21.0"

    def test_directory_name_in_display_name(self) -> None:
        plugins = [{"name": "Contact Form 7", "version": "5.8"}]
        match = find_plugin("contact-form-7/wp-contact-form-7.php", plugins)
        assert match.rule == RULE_DIRECTORY_NAME

    def test_path_containment(self) -> None:
        plugins = [{"plugin": "jetpack/jetpack.php", "name": "Something", "version": "12.0"}]
        match = find_plugin("jetpack/jetpack", plugins)
        assert match.rule == RULE_PATH_CONTAINS

    def test_slug_equality(self) -> None:
        plugins = [{"plugin": "classic-editor/main.php", "name": "Editor", "version": "1.6"}]
        match = find_plugin("classic-editor/classic-editor.php", plugins)
        assert match.rule == RULE_SLUG
        assert match.item["version"] == "1.6"

    @given(target=slug_strategy)
    @settings(max_examples=50)
    def test_no_match(self, target: str) -> None:
        plugins = [{"plugin": "zz/zz.php", "name": "ZZ", "version": "1.0"}]
        if "z" in target:
            return
        assert find_plugin(f"{target}/{target}.php", plugins) is None

    def test_empty_target(self) -> None:
        assert find_plugin("", [{"plugin": "a/a.php"}]) is None


class TestThemeMatchProperty:
    """
    Tests for theme lookup.
    """

    @given(stylesheet=slug_strategy, version=version_strategy)
    @settings(max_examples=50)
    def test_stylesheet_match(self, stylesheet: str, version: str) -> None:
        themes = [{"stylesheet": stylesheet, "name": "Theme", "version": version}]
        match = find_theme(stylesheet, themes)
        assert match.item["version"] == version
        assert match.inventory == InventoryItem(
            identifier=stylesheet, version=version, active=False, name="Theme", raw=themes[0]
        )

    def test_slug_and_name_fallbacks(self) -> None:
        themes = [{"slug": "astra", "name": "Astra", "version": "4.5"}]
        assert find_theme("astra", themes).rule == RULE_SLUG
        assert find_theme("Astra", themes).item["version"] == "4.5"
        assert find_theme("kadence", themes) is None


class TestListingHelpersProperty:
    """
    Tests for listing extraction and core version lookup.
    """

    def test_as_item_list_accepts_arrays_and_wrappers(self) -> None:
        items = [{"plugin": "a/a.php"}, "junk", {"plugin": "b/b.php"}]
        assert as_item_list(items, "plugins") == [{"plugin": "a/a.php"}, {"plugin": "b/b.php"}]
        assert as_item_list({"plugins": items}, "plugins") == [{"plugin": "a/a.php"}, {"plugin": "b/b.php"}]
        assert as_item_list("nope", "plugins") == []
        assert as_item_list(None, "plugins") == []

    @given(directory=slug_strategy, filename=slug_strategy)
    @settings(max_examples=50)
    def test_plugin_slug(self, directory: str, filename: str) -> None:
        assert plugin_slug(f"{directory}/{filename}.php") == directory
        assert plugin_slug(f"{filename}.php") == filename

    def test_core_version_shapes(self) -> None:
        assert core_version({"wordpress_version": "6.4.2"}) == "6.4.2"
        assert core_version({"version": "6.3"}) == "6.3"
        assert core_version({"wordpress": {"version": "6.2"}}) == "6.2"
        assert core_version({"wordpress": {"current_version": "6.1"}}) == "6.1"
        assert core_version({"php_version": "8.2"}) is None
        assert core_version("6.4") is None


class TestInventoryItemProperty:
    """
    Tests for the typed view of matched listing entries.
    """

    def test_plugin_fields(self) -> None:
        plugins = [{"plugin": "akismet/akismet.php", "name": "Akismet", "version": "5.3", "active": True}]

        item = find_plugin("akismet/akismet.php", plugins).inventory

        assert item.identifier == "akismet/akismet.php"
        assert item.version == "5.3"
        assert item.active is True
        assert item.name == "Akismet"
        assert item.raw is plugins[0]

    def test_missing_version_is_unknown(self) -> None:
        item = find_plugin("hello.php", [{"plugin": "hello.php", "name": "Hello Dolly"}]).inventory
        assert item.version == UNKNOWN_VERSION
        assert item.active is False

    def test_numeric_version_becomes_text(self) -> None:
        item = find_theme("astra", [{"stylesheet": "astra", "version": 4}]).inventory
        assert item.version == "4"
        assert item.name == ""
