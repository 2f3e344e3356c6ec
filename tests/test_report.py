"""
Markdown report tiers
"""
import pytest

from annotator.dom import DomElement
from annotator.models import ComponentNode, Environment, Rect, Settings, Viewport
from annotator.report import (
    component_info,
    describe_node,
    element_label,
    generate_report,
    js_round,
    marker_output,
    url_path,
)

ENV = Environment(
    url="https://shop.example.com/products?page=2",
    viewport=Viewport(width=1280, height=800),
    user_agent="Mozilla/5.0 TestAgent",
    timestamp=1700000000000,
)


def tier(detail: str, **kw) -> Settings:
    return Settings(output_detail=detail, **kw)


def plain(tag: str, text: str = "", classes=(), attributes=None, display_name=None, selector=None) -> ComponentNode:
    el = DomElement(tag, classes=classes, attributes=attributes, text=text, rect=Rect(x=10, y=20, width=100, height=40))
    return ComponentNode(
        uid="ag-1-1",
        display_name=display_name if display_name is not None else tag,
        selector=selector if selector is not None else tag,
        dom_path=f"body > {tag}",
        element=el,
        rect=el.rect,
    )


@pytest.fixture
def card(page, resolver):
    return resolver.resolve(page.el["card"])


def is_subsequence(small, big) -> bool:
    it = iter(big)
    return all(line in it for line in small)


class TestEnvironment:
    def test_compact_has_no_environment(self, card):
        text = generate_report([(card, "")], tier("compact"), ENV)
        assert text.startswith("## Page Feedback\n")
        assert "**Environment:**" not in text

    def test_standard_block(self, card):
        text = generate_report([(card, "")], tier("standard"), ENV)
        assert text.startswith("## Page Feedback: /products\n\n**Environment:**\n")
        assert "- Viewport: 1280×800" in text
        assert "- URL: https://shop.example.com/products?page=2" in text
        assert "- Timestamp: 2023-11-14T22:13:20.000Z" in text
        assert "User Agent" not in text
        assert "\n---\n" in text

    def test_user_agent_from_detailed_up(self, card):
        for detail in ("detailed", "forensic"):
            assert "- User Agent: Mozilla/5.0 TestAgent" in generate_report([(card, "")], tier(detail), ENV)

    def test_missing_fields_are_omitted(self, card):
        text = generate_report([(card, "")], tier("forensic"), Environment())
        assert text.startswith("## Page Feedback: /\n\n**Environment:**\n\n---\n")
        assert "Viewport" not in text and "URL" not in text
        assert "**Annotation at:**" not in text

    def test_url_path(self):
        assert url_path(None) == "/"
        assert url_path("https://a.example.com") == "/"
        assert url_path("https://a.example.com/x/y?q=1") == "/x/y"


class TestCompact:
    def test_two_markers_example(self, page, resolver):
        card = resolver.resolve(page.el["card"])
        other = resolver.resolve(page.el["other"])
        text = generate_report([(card, "Fix styling"), (other, "")], tier("compact"), ENV)
        sections = text.split("### ")[1:]
        assert len(sections) == 2
        assert sections[0].startswith("1. ProductCardComponent\n")
        assert sections[0].rstrip("\n").endswith("**Feedback:** Fix styling")
        assert sections[1].startswith("2. ")
        assert "**Feedback:**" not in sections[1]

    def test_compact_fields(self, card):
        out = marker_output(card, "Fix styling", 1, tier("compact"), ENV)
        assert out.splitlines() == [
            "### 1. ProductCardComponent",
            "**Selector:** `<app-product-card>`",
            "**Feedback:** Fix styling",
        ]


class TestStandard:
    def test_fields(self, card):
        out = marker_output(card, "Fix styling", 1, tier("standard"), ENV)
        assert out.splitlines() == [
            "### 1. ProductCardComponent",
            "**Full DOM Path:** body > app-root > div.grid > app-product-card.card",
            "**CSS Classes:** card, featured",
            "**Position:** x:100, y:200 (300×150px)",
            "**Key Styles:** color: rgb(0, 0, 0); background-color: rgb(255, 255, 255); "
            "font-size: 16px; font-weight: 400; display: block; position: relative",
            "**Feedback:** Fix styling",
        ]

    def test_position_rounds_half_up(self):
        node = plain("div").model_copy(update={"rect": Rect(x=10.5, y=2.5, width=99.5, height=0.4)})
        out = marker_output(node, "", 1, tier("standard"), ENV)
        assert "**Position:** x:11, y:3 (100×0px)" in out
        assert js_round(-0.5) == 0


class TestDetailed:
    def test_fields(self, card):
        lines = marker_output(card, "", 1, tier("detailed"), ENV).splitlines()
        assert "**Annotation at:** 19.5% from left, 275px from top" in lines
        assert "**Context:** Blue MugAdd to cart" in lines
        assert "**Accessibility:** aria-label: \"Blue Mug card\", role: region" in lines
        assert "**Nearby Elements:** app-product-card.card" in lines
        styles = next(line for line in lines if line.startswith("**Computed Styles:**"))
        assert "font-family: Inter" in styles
        # none / normal / auto never appear
        assert "border:" not in styles and "cursor:" not in styles and "z-index:" not in styles

    def test_context_truncated_at_200(self):
        node = plain("div", text="A" * 300, classes=["box"])
        lines = marker_output(node, "", 1, tier("detailed"), ENV).splitlines()
        context = next(line for line in lines if line.startswith("**Context:**"))
        assert context == "**Context:** " + "A" * 200 + "..."

    def test_focusable(self, page, resolver):
        node = resolver.resolve(page.el["button"])
        out = marker_output(node, "", 1, tier("detailed"), ENV)
        assert "**Accessibility:** focusable" in out

    def test_many_siblings_are_summarised(self):
        parent = DomElement("ul", classes=["menu"])
        items = [parent.append(DomElement("li", classes=["item"], text=f"Item {i}")) for i in range(7)]
        node = ComponentNode(uid="u", display_name="li.item", selector="li", dom_path="", element=items[0])
        out = marker_output(node, "", 1, tier("detailed"))
        assert '**Nearby Elements:** li.item "Item 1", li.item "Item 2", li.item "Item 3" (7 total in .menu)' in out

    def test_total_counts_children_not_shipped(self):
        parent = DomElement("ul", classes=["menu"], meta={"child_count": 120})
        items = [parent.append(DomElement("li", classes=["item"], text=f"Item {i}")) for i in range(50)]
        node = ComponentNode(uid="u", display_name="li.item", selector="li", dom_path="", element=items[0])
        out = marker_output(node, "", 1, tier("detailed"))
        assert "(120 total in .menu)" in out


class TestForensic:
    def test_selected_text_for_long_content(self):
        node = plain("div", text="B" * 150, classes=["box"])
        lines = marker_output(node, "", 1, tier("forensic"), ENV).splitlines()
        assert "**Context:** " + "B" * 150 in lines
        assert '**Selected text:** "' + "B" * 150 + '"' in lines

    def test_short_content_has_no_selected_text(self, card):
        assert "**Selected text:**" not in marker_output(card, "", 1, tier("forensic"), ENV)


class TestTierAdditivity:
    @pytest.mark.parametrize("name", ["card", "button", "icon", "title"])
    def test_lower_tiers_are_contained(self, page, resolver, name):
        node = resolver.resolve(page.el[name])
        outputs = {
            detail: marker_output(node, "Needs work", 1, tier(detail), ENV).splitlines()
            for detail in ("compact", "standard", "detailed", "forensic")
        }
        assert is_subsequence(outputs["standard"], outputs["detailed"])
        assert is_subsequence(outputs["detailed"], outputs["forensic"])
        assert outputs["compact"][0] == outputs["standard"][0]
        assert outputs["compact"][-1] == outputs["standard"][-1]

    def test_whole_report(self, page, resolver):
        markers = [(resolver.resolve(page.el["card"]), "Fix styling"), (resolver.resolve(page.el["button"]), "")]
        standard = generate_report(markers, tier("standard"), ENV).splitlines()
        detailed = generate_report(markers, tier("detailed"), ENV).splitlines()
        assert is_subsequence(standard, detailed)


class TestElementLabel:
    def test_framework_name_first(self, card):
        assert element_label(card) == "ProductCardComponent"

    def test_framework_name_skipped_when_hidden(self, card):
        assert element_label(card, show_framework_components=False) == 'region: "Blue MugAdd to cart"'

    @pytest.mark.parametrize("node, expected", [
        (plain("button", text="Save"), 'button "Save"'),
        (plain("button"), 'button "(no text)"'),
        (plain("a", attributes={"aria-label": "Home"}), 'link "Home"'),
        (plain("input", attributes={"type": "email"}), "input[email]"),
        (plain("input"), "input[text]"),
        (plain("p", text="Hello world"), 'paragraph: "Hello world..."'),
        (plain("section", classes=["hero", "dark"]), "section.hero"),
        (plain("span", selector="app-badge"), "<app-badge>"),
        (plain("span", selector=""), "span"),
        (plain("div", text="Go", attributes={"role": "tab"}), 'tab: "Go"'),
    ])
    def test_heuristics(self, node, expected):
        assert element_label(node) == expected


class TestDescribeNode:
    def test_listing(self, card):
        text = describe_node(card)
        assert text.splitlines()[0] == "ProductCardComponent <app-product-card>"
        assert '    product = {"name":"Blue Mug","price":12.5,"tags":["kitchen"]}' in text
        assert "    loading = false" in text
        assert "  outputs: addToCart" in text
        assert "  parent: AppComponent <app-root>" in text

    def test_plain_node_directives(self, page, resolver):
        text = describe_node(resolver.resolve(page.el["button"]))
        assert "  directives: TooltipDirective" in text


class TestComponentInfo:
    def test_always_forensic(self, card):
        text = component_info(card, tier("compact"), ENV)
        assert text == marker_output(card, "", 1, tier("forensic"), ENV)
        assert "**Full DOM Path:**" in text
        assert "**Feedback:**" not in text

    def test_keeps_framework_name_setting(self, card):
        text = component_info(card, tier("compact", show_framework_components=False), ENV)
        assert text.splitlines()[0] == "### 1. " + element_label(card, show_framework_components=False)
