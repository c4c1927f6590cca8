"""Handlebars prompt rendering and the narrator's standing instructions."""

from collections.abc import Callable
from typing import Any, Literal

import pybars
from pydantic import BaseModel

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Narrator rules ───────────────────────────────────────

SYSTEM_INSTRUCTION_SUFFIX = """
IMPORTANT GAME RULES:
- When the player gains an item, output exactly: [ITEM_ADD: Name|Description|Quantity]
- When the player loses or uses up an item, output exactly: [ITEM_REMOVE: Name|Quantity]
- When the player enters a new named location, output exactly: [LOCATION: Name|Description]
- When the player meets a character, output exactly: [NPC: Name|Location|Description]
- When something important happens, output exactly: [EVENT: Description]
- When the player learns something that must not be forgotten, output exactly: [FACT: Fact|critical, major or minor]
- Keep these tags on separate lines if possible.
"""


# ── Story opening ────────────────────────────────────────

GENRE_DESCRIPTIONS: dict[str, str] = {
    "fantasy": "a high fantasy world with magic, mythical creatures, and medieval settings",
    "scifi": "a science fiction universe with advanced technology, space travel, and futuristic societies",
    "noir": "a noir mystery setting with crime, intrigue, and morally ambiguous characters",
    "horror": "a horror setting with supernatural elements, tension, and survival themes",
    "historical": "a historically-inspired setting with period-accurate details and atmosphere",
    "modern": "a modern contemporary setting in the present day",
    "custom": "a unique setting based on the player's preferences",
}

StartingOption = Literal["ask", "tavern", "action", "custom"]


class StoryConfig(BaseModel):
    """Choices made on the setup screen."""

    genre: str = "fantasy"
    character_concept: str = ""
    starting_option: StartingOption = "ask"
    custom_intro: str = ""


DEFAULT_INIT_PROMPT = (
    "Greet the player and ask them how they would like to begin their adventure. "
    "What kind of character will they be? What is their goal? Set the scene with "
    "an initial location using the [LOCATION:...] tag."
)

INIT_PROMPT_TEMPLATE = """\
The setting is {{{genre}}}.

{{#if concept}}
The player's character concept is: "{{{concept}}}".

{{/if}}
{{#if is_ask}}
Begin by briefly setting the scene with a [LOCATION:...] tag, then ASK the \
player what they would like to do first. Give them 2-3 specific options to \
choose from, or let them suggest their own idea. Don't assume what they want \
to do - let them decide.
{{/if}}
{{#if is_tavern}}
Begin the story at a classic hub location appropriate for the genre (a \
tavern, cantina, office, safe house, etc.). Describe the atmosphere and a few \
interesting NPCs using [NPC:...] tags. Then ask the player what catches their \
attention.
{{/if}}
{{#if is_action}}
Begin the story in the middle of an exciting moment - perhaps a chase, \
discovery, or confrontation. Set the scene dramatically with a [LOCATION:...] \
tag and present the player with an immediate choice or action to take.
{{/if}}
{{#if is_custom}}
{{#if intro}}
The player has provided this opening scenario: "{{{intro}}}"

Continue from this point, establishing the scene with appropriate tags and \
responding to their setup.
{{else}}
Begin by asking the player to describe how they'd like the story to start.
{{/if}}
{{/if}}

Remember to use [LOCATION:...] tags to establish the setting. Keep the \
initial response concise and engaging.\
"""


def build_init_prompt(config: StoryConfig | None) -> str:
    """Opening request for a new story."""
    if config is None:
        return DEFAULT_INIT_PROMPT
    option = config.starting_option
    ctx = {
        "genre": GENRE_DESCRIPTIONS.get(config.genre, GENRE_DESCRIPTIONS["custom"]),
        "concept": config.character_concept.strip(),
        "intro": config.custom_intro.strip(),
        "is_ask": option == "ask",
        "is_tavern": option == "tavern",
        "is_action": option == "action",
        "is_custom": option == "custom",
    }
    return render_prompt(INIT_PROMPT_TEMPLATE, ctx)


# ── Movement directives ──────────────────────────────────

ARRIVAL_TEMPLATE = (
    "\n\n[ARRIVAL COMMAND - The player has ARRIVED. You MUST describe them being "
    "INSIDE {{{destination}}} NOW. Start your response with them already at the new "
    "location. Use [LOCATION: {{{destination}}}|Description]. Do NOT describe "
    "traveling or leaving - they are ALREADY THERE.]"
)

MOVEMENT_TEMPLATE = """

[MOVEMENT COMMAND - COMPLETE THE JOURNEY IN THIS RESPONSE!
You MUST:
1. One brief travel sentence (MAXIMUM)
2. Describe player ARRIVING and being INSIDE {{{destination}}}
3. Use [LOCATION: {{{destination}}}|Description] tag
4. Describe the NEW location's interior/details
5. DO NOT end with fog, traveling, or suspense - they ARRIVE NOW!
FORBIDDEN: Ending response with player still outside or traveling.]"""

HOME_TEMPLATE = (
    "\n\n[MOVEMENT TO HOME - Describe arrival at their home. Use "
    "[LOCATION: Player's Home|Description]. They ARRIVE in this response.]"
)
