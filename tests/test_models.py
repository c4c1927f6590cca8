"""Tests for role_game.models — ids and wire fragments."""

from role_game.models import AddItem, Fragment, ParsedResponse, make_id


def test_make_id_lowercases_and_hyphenates() -> None:
    assert make_id("Rusty Key") == "rusty-key"


def test_make_id_collapses_whitespace() -> None:
    assert make_id("  Old   Mill\tRoad ") == "old-mill-road"


def test_fragment_from_wire_partial() -> None:
    frag = Fragment.from_wire({"model": "m", "response": "Hello", "done": False})
    assert frag.text == "Hello"
    assert frag.is_final is False
    assert frag.continuation_token is None


def test_fragment_from_wire_final_carries_context() -> None:
    frag = Fragment.from_wire({"response": "", "done": True, "context": [1, 2, 3]})
    assert frag.is_final is True
    assert frag.continuation_token == [1, 2, 3]


def test_fragment_from_wire_missing_response() -> None:
    assert Fragment.from_wire({"done": True}).text == ""


def test_parsed_response_serialises_command_type() -> None:
    parsed = ParsedResponse(
        clean_text="x",
        commands=[AddItem(id="torch", name="Torch")],
    )
    dumped = parsed.model_dump(mode="json")
    assert dumped["commands"][0]["type"] == "ADD_ITEM"
    assert dumped["commands"][0]["description"] == "No description"
