import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from autoanswer.dom import FIELD_ID_ATTR, GROUP_ATTR, Document
from autoanswer.schema import (
    block_text,
    collect_choice_groups,
    collect_page_text,
    collect_schema,
    generate_field_id,
)

SURVEY_HTML = """
<form>
  <label>Email <input type="email" name="email"></label>
  <textarea name="notes" placeholder="Anything else?"></textarea>
  <div contenteditable="true" aria-label="Bio"></div>
  <input type="hidden" name="csrf" value="x">
  <input type="submit" value="Send">
  <fieldset>
    <legend>Preferred contact</legend>
    <label><input type="radio" name="contact" value="mail"> Mail</label>
    <label><input type="radio" name="contact" value="phone"> Phone</label>
  </fieldset>
  <fieldset>
    <legend>Interests</legend>
    <label><input type="checkbox" value="a"> Music</label>
    <label><input type="checkbox" value="b"> Sports</label>
  </fieldset>
</form>
"""


def test_generated_id_segments_follow_attribute_order():
    document = Document("<input id='e' name='mail' aria-label='Email' placeholder='you@x' type='email'>")
    assert generate_field_id(document.soup.input, 3) == "id:e|name:mail|aria:Email|ph:you@x|type:email|idx:3"

    document = Document("<textarea></textarea>")
    assert generate_field_id(document.soup.textarea, 0) == "type:textarea|idx:0"


def test_only_visible_text_field_is_collected():
    document = Document(
        "<label>Email <input type='text'></label>"
        "<label style='display: none'>Phone <input type='text'></label>"
    )
    schema = collect_schema(document)
    assert len(schema.text_fields) == 1
    assert schema.text_fields[0].label == "Email"
    assert schema.choice_groups == []


def test_collect_schema_finds_text_like_controls_and_groups():
    document = Document(SURVEY_HTML)
    schema = collect_schema(document)

    assert [field.type for field in schema.text_fields] == ["email", "textarea", "div"]
    assert [field.label for field in schema.text_fields] == ["Email", "Anything else?", "Bio"]

    radio, checkbox = schema.choice_groups
    assert radio.group_id == "group:radio:0"
    assert radio.group_type == "radio"
    assert radio.question == "Preferred contact"
    assert [option.label for option in radio.options] == ["Mail", "Phone"]
    assert checkbox.group_id == "group:checkbox:1"
    assert checkbox.question == "Interests"
    assert [option.label for option in checkbox.options] == ["Music", "Sports"]


def test_discovery_stamps_tokens_and_groups():
    document = Document(SURVEY_HTML)
    schema = collect_schema(document)

    email = document.soup.find("input", attrs={"name": "email"})
    assert email[FIELD_ID_ATTR] == schema.text_fields[0].id
    mail = document.soup.find("input", attrs={"value": "mail"})
    assert mail[GROUP_ATTR] == "group:radio:0"
    assert mail[FIELD_ID_ATTR] == schema.choice_groups[0].options[0].id


def test_identifiers_are_deterministic_across_passes():
    document = Document(SURVEY_HTML)
    first = collect_schema(document)
    second = collect_schema(document)
    assert first.model_dump() == second.model_dump()


def test_role_based_choices_group_by_radiogroup_label():
    document = Document(
        "<div role='radiogroup' aria-label='Plan'>"
        "<div role='radio' aria-checked='false' aria-label='Basic'>Basic</div>"
        "<div role='radio' aria-checked='false' aria-label='Pro'>Pro</div>"
        "</div>"
    )
    groups = collect_choice_groups(document)
    assert len(groups) == 1
    assert groups[0].group_type == "radio"
    assert [option.label for option in groups[0].options] == ["Basic", "Pro"]


def test_scoped_collection_uses_prefix():
    document = Document(
        "<div id='q1'><p>Pick one</p><label><input type='radio' name='a'> A</label></div>"
        "<div id='q2'><label><input type='radio' name='b'> B</label></div>"
    )
    groups = collect_choice_groups(document, scope=document.element_by_id("q2"), prefix="sel")
    assert [group.group_id for group in groups] == ["sel:radio:0"]
    assert groups[0].options[0].label == "B"


def test_page_and_block_text_are_collapsed():
    document = Document("<body><h1>Survey</h1>\n\n<div id='q'>  Question   one <input></div></body>")
    assert collect_page_text(document) == "Survey Question one"
    assert block_text(document, document.soup.input) == "Question one"
    assert len(collect_page_text(document, limit=6)) == 6
