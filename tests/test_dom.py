import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from autoanswer.dom import NODE_ATTR, Document, closest, inner_text, previous_element_sibling


def test_inner_text_skips_scripts_and_comments():
    document = Document(
        "<div id='box'>Hello <script>var x = 1;</script><!-- note --><b>world</b><p>again</p></div>"
    )
    assert inner_text(document.element_by_id("box")) == "Hello world again"


def test_closest_includes_node_itself():
    document = Document("<form><div id='inner'><input id='field'></div></form>")
    field = document.element_by_id("field")
    assert closest(field, ("input",)) is field
    assert closest(field, ("form",)).name == "form"
    assert closest(field, ("section",)) is None


def test_previous_element_sibling_ignores_text_nodes():
    document = Document("<div><span>Caption</span> some text <input id='field'></div>")
    sibling = previous_element_sibling(document.element_by_id("field"))
    assert sibling is not None and sibling.name == "span"


def test_static_layout_hides_display_none_subtrees():
    document = Document("<div style='display: none'><input id='a'></div><input id='b' hidden><input id='c'>")
    layout = document.layout
    assert layout.box(document.element_by_id("a")).width == 0
    assert layout.style(document.element_by_id("b")).display == "none"
    assert layout.box(document.element_by_id("c")).height > 0


def test_static_layout_stacks_elements_in_document_order():
    document = Document("<input id='first'><input id='second'>")
    first = document.layout.box(document.element_by_id("first"))
    second = document.layout.box(document.element_by_id("second"))
    assert second.y > first.y


def test_mutations_record_events_and_operations():
    document = Document(f"<input id='name' {NODE_ATTR}='n1'>")
    node = document.element_by_id("name")

    document.set_value(node, "Ada")
    document.dispatch(node, "input")

    assert node["value"] == "Ada"
    assert document.events_for(node) == ["input"]
    operations = document.drain_operations()
    assert [op.op for op in operations] == ["value", "dispatch"]
    assert operations[0].to_payload() == {"op": "value", "node": "n1", "name": None, "value": "Ada"}
    assert document.operations == []


def test_textarea_value_is_written_as_content():
    document = Document("<textarea id='bio'>old</textarea>")
    node = document.element_by_id("bio")
    document.set_value(node, "new")
    assert node.get_text() == "new"


def test_from_snapshot_restores_live_state_and_geometry():
    payload = {
        "html": (
            f"<html><body {NODE_ATTR}='n0'>"
            f"<input id='email' {NODE_ATTR}='n1'>"
            f"<input type='checkbox' id='agree' {NODE_ATTR}='n2' checked>"
            "</body></html>"
        ),
        "nodes": {
            "n0": {"display": "block", "visibility": "visible", "opacity": 1, "rect": {"x": 0, "y": 0, "width": 800, "height": 600}},
            "n1": {
                "display": "inline-block",
                "visibility": "visible",
                "opacity": 1,
                "rect": {"x": 10, "y": 40, "width": 200, "height": 20},
                "value": "typed@example.com",
            },
            "n2": {"display": "inline-block", "visibility": "visible", "opacity": 1, "rect": {}, "checked": False},
        },
        "focused": "n1",
        "selection": None,
        "viewportHeight": 700,
        "url": "https://example.com/form",
    }

    document = Document.from_snapshot(payload)

    email = document.element_by_id("email")
    assert document.focused is email
    assert email["value"] == "typed@example.com"
    assert not document.element_by_id("agree").has_attr("checked")
    assert document.viewport_height == 700
    assert document.layout.box(email).center_y == 50
    assert document.operations == []


def test_attribute_writes_are_recorded_for_replay():
    document = Document(f"<div role='radio' id='opt' {NODE_ATTR}='n7' aria-checked='true'></div>")
    node = document.element_by_id("opt")

    document.set_attribute(node, "aria-checked", "false")
    document.remove_attribute(node, "aria-checked")

    assert not node.has_attr("aria-checked")
    assert [op.to_payload() for op in document.drain_operations()] == [
        {"op": "set_attr", "node": "n7", "name": "aria-checked", "value": "false"},
        {"op": "remove_attr", "node": "n7", "name": "aria-checked", "value": None},
    ]
