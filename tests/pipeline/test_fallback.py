"""Tests for heuristic extraction from untagged narration."""

from role_game.models import AddItem, AddStoryFact, SetLocation
from role_game.pipeline.fallback import (
    FALLBACK_ITEM_DESCRIPTION,
    FALLBACK_LOCATION_DESCRIPTION,
    extract_commands,
    extract_facts,
    fallback_items,
    fallback_location,
)


class TestFallbackItems:
    def test_pick_up(self) -> None:
        items = fallback_items("You pick up the rusty key from the table.")
        assert items == [
            AddItem(id="rusty-key", name="Rusty Key", description=FALLBACK_ITEM_DESCRIPTION, quantity=1),
        ]

    def test_given_item(self) -> None:
        items = fallback_items("The innkeeper hands you a silver coin and winks.")
        assert [i.name for i in items] == ["Silver Coin"]

    def test_excluded_words(self) -> None:
        assert fallback_items("You take a moment to breathe.") == []
        assert fallback_items("You take a deep breath.") == []

    def test_excluded_head_noun_with_trailing_words(self) -> None:
        assert fallback_items("You take a step back.") == []
        assert fallback_items("You take a seat at the bar.") == []
        assert fallback_items("You take a look around.") == []

    def test_adverb_ends_item_name(self) -> None:
        items = fallback_items("You grab the rope down from the hook.")
        assert [i.name for i in items] == ["Rope"]

    def test_duplicates_collapsed(self) -> None:
        items = fallback_items("You grab a torch. Later you take the torch.")
        assert [i.id for i in items] == ["torch"]

    def test_multiple_items_in_text_order(self) -> None:
        items = fallback_items("You pocket the coin. The guard gives you a map.")
        assert [i.name for i in items] == ["Coin", "Map"]


class TestFallbackLocation:
    def test_arrival(self) -> None:
        loc = fallback_location("You arrive at the Gilded Griffin Inn. A fire crackles.")
        assert loc == SetLocation(
            id="gilded-griffin-inn",
            name="Gilded Griffin Inn",
            description=FALLBACK_LOCATION_DESCRIPTION,
        )

    def test_only_first_match(self) -> None:
        loc = fallback_location("You enter the library. Later you reach the tower.")
        assert loc.name == "Library"

    def test_standing_in(self) -> None:
        loc = fallback_location("You are standing in the Great Hall, surrounded by banners.")
        assert loc.name == "Great Hall"

    def test_gate_opens_onto(self) -> None:
        loc = fallback_location("The iron gate swings open onto a moonlit courtyard.")
        assert loc.name == "Moonlit Courtyard"

    def test_excluded(self) -> None:
        assert fallback_location("You step into the darkness.") is None

    def test_reaching_for_something_is_not_a_place(self) -> None:
        assert fallback_location("You reach for your sword.") is None
        assert fallback_location("You reach out and touch the wall.") is None

    def test_reach_still_finds_place(self) -> None:
        assert fallback_location("You reach the old watchtower at dusk.").name == "Old Watchtower"

    def test_none(self) -> None:
        assert fallback_location("Rain falls.") is None


class TestExtractFacts:
    def test_discovery_is_major(self) -> None:
        facts = extract_facts("You discover that the mayor is secretly a vampire.")
        assert facts == [AddStoryFact(fact="the mayor is secretly a vampire", importance="major")]

    def test_inscription_is_minor(self) -> None:
        facts = extract_facts('Carved into the stone are the words "Only the worthy may pass".')
        assert facts == [AddStoryFact(fact='Written: "Only the worthy may pass"', importance="minor")]

    def test_hidden_thing(self) -> None:
        facts = extract_facts("Behind the shelf sits a hidden passage leading down.")
        assert facts == [AddStoryFact(fact="a hidden passage leading down", importance="major")]

    def test_too_short_ignored(self) -> None:
        assert extract_facts("You learn it.") == []

    def test_too_long_ignored(self) -> None:
        assert extract_facts("You learn that " + "very " * 30 + "long.") == []


class TestExtractCommands:
    def test_tagged_item_suppresses_item_fallback(self) -> None:
        parsed = extract_commands("[ITEM_ADD: Lantern|Brass|1] You pick up a torch.")
        assert [c.name for c in parsed.commands if c.type == "ADD_ITEM"] == ["Lantern"]
        assert parsed.clean_text == "You pick up a torch."

    def test_tagged_location_suppresses_location_fallback(self) -> None:
        parsed = extract_commands("[LOCATION: Crypt|Cold] You enter the chapel.")
        assert [c.name for c in parsed.commands if c.type == "SET_LOCATION"] == ["Crypt"]

    def test_untagged_text_uses_fallbacks(self) -> None:
        parsed = extract_commands("You enter the chapel. You grab a candle.")
        kinds = [(c.type, c.name) for c in parsed.commands]
        assert kinds == [("ADD_ITEM", "Candle"), ("SET_LOCATION", "Chapel")]

    def test_facts_run_alongside_tags(self) -> None:
        parsed = extract_commands(
            "[ITEM_ADD: Letter|Sealed|1] You realize that the letter is a forgery."
        )
        assert parsed.commands[-1] == AddStoryFact(
            fact="the letter is a forgery", importance="major",
        )
