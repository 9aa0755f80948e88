import copy

from pagesmith.schemas.content import StructuredContent
from pagesmith.services.merge_compiler import compile_changes

from conftest import CONTENT


def stored(**overrides):
    content = copy.deepcopy(CONTENT)
    content.update(overrides)
    return StructuredContent.model_validate(content).stored()


def test_identical_content_has_no_changes():
    assert compile_changes(stored(), stored()) == []


def test_missing_and_empty_values_are_equal():
    previous = stored()
    previous.pop("tagline")
    previous["faq"] = None
    assert compile_changes(previous, stored()) == []


def test_key_order_inside_objects_is_ignored():
    previous = stored()
    current = stored()
    current["services"] = [dict(reversed(list(item.items()))) for item in current["services"]]
    assert compile_changes(previous, current) == []


def test_phone_change_is_described_from_to():
    changes = compile_changes(stored(), stored(phone="+385 91 000 0000"))
    assert [c.field for c in changes] == ["phone"]
    assert changes[0].description == 'Phone: "+385 1 234 5678" → "+385 91 000 0000"'


def test_services_added_and_removed_are_named():
    services = [
        {"name": "Haircut", "description": "Wash, cut and style"},
        {"name": "Manicure", "description": "Hands"},
        {"name": "Pedicure", "description": "Feet"},
    ]
    changes = compile_changes(stored(), stored(services=services))
    assert len(changes) == 1
    text = changes[0].description
    assert text.startswith("Services updated (2 → 3 services)")
    assert '"Manicure"' in text and '"Pedicure"' in text
    assert 'removed: "Coloring"' in text


def test_modified_service_is_named():
    services = copy.deepcopy(CONTENT["services"])
    services[1]["description"] = "Balayage and highlights"
    changes = compile_changes(stored(), stored(services=services))
    assert 'modified: "Coloring"' in changes[0].description


def test_color_group_is_reported_once():
    changes = compile_changes(stored(), stored(primary_color="#000000", secondary_color="#ffffff"))
    assert [c.field for c in changes] == ["colors"]
    assert changes[0].description == "Colors updated: primary=#000000, secondary=#ffffff"


def test_changes_follow_form_order():
    changes = compile_changes(
        stored(),
        stored(address="Ilica 1, Zagreb", business_name="Salon Ana Plus", tagline="Since 2004"),
    )
    assert [c.field for c in changes] == ["business_name", "tagline", "address"]


def test_first_content_against_nothing():
    changes = compile_changes(None, stored())
    fields = [c.field for c in changes]
    assert fields[0] == "business_name"
    assert "services" in fields
