import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from autoanswer.dom import Document
from autoanswer.field_index import build_index, normalize_key
from autoanswer.schema import collect_schema


def test_normalize_key_strips_punctuation_and_case():
    assert normalize_key("  Hello,   World!! ") == "hello world"
    assert normalize_key("E-mail_Address") == "e mail address"
    assert normalize_key(None) == ""


def test_first_registration_wins_for_duplicate_labels():
    document = Document("<label>Name <input name='first'></label><label>Name <input name='second'></label>")
    schema = collect_schema(document)
    index = build_index(document)

    assert index.by_label["name"]["name"] == "first"
    assert index.by_name["second"]["name"] == "second"
    assert set(index.by_id) == {field.id for field in schema.text_fields}


def test_lookup_key_order():
    document = Document(
        "<input id='city-field' name='city' placeholder='Your city'>"
        "<label>Country <input name='country'></label>"
    )
    schema = collect_schema(document)
    index = build_index(document)

    assert index.lookup_key(schema.text_fields[0].id)["name"] == "city"
    assert index.lookup_key("COUNTRY")["name"] == "country"
    assert index.lookup_key("city field")["name"] == "city"
    assert index.lookup_key("your city")["name"] == "city"
    assert index.lookup_key("unknown") is None


def test_groups_are_materialized_with_options_and_question():
    document = Document(
        "<fieldset><legend>Favorite color?</legend>"
        "<label><input type='radio' name='color' value='r'> Red</label>"
        "<label><input type='radio' name='color' value='g'> Green</label>"
        "</fieldset>"
    )
    collect_schema(document)
    index = build_index(document)

    group = index.find_group("group:radio:0")
    assert group is not None
    assert group.group_type == "radio"
    assert group.question == "Favorite color?"
    assert [option.label for option in group.options] == ["Red", "Green"]
    assert group.options[0].surrounding == "Red"
    assert index.find_group("favorite color") is group
    assert index.find_group("color") is group
    assert index.find_group("size") is None
