"""Interactive terminal prompts."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import ContributorForm

logger = logging.getLogger(__name__)


class ContributorCompleter(Completer):
    """Fuzzy search completer for a check's contributors."""

    def __init__(self, contributors: list[ContributorForm]):
        """Initialize the completer with the check's contributors."""
        # Names may repeat, so keep the first index for each name
        self.name_to_index: dict[str, int] = {}
        for index, contributor in enumerate(contributors):
            self.name_to_index.setdefault(contributor.name.dirty, index)

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for name in self.name_to_index:
            if not query or self._fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(document.text),
                    display=name,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="al" matches "Alice"
            query="bb" matches "Bobby"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_contributor_interactive(
    contributors: list[ContributorForm],
    item_name: str,
    current_index: int | None = None,
) -> int | None:
    """
    Interactive buyer selection with fuzzy search.

    Args:
        contributors: Contributors of the check
        item_name: Name of the item whose buyer is being chosen
        current_index: Current buyer, pre-filled as the default

    Returns:
        Selected contributor index, or None to skip
    """
    if not contributors:
        print("No contributors to choose from.")
        return None

    print(f"\n🧾 Buyer of: {item_name}")
    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    completer = ContributorCompleter(contributors)
    session: PromptSession[str] = PromptSession(completer=completer)

    default_text = ""
    if current_index is not None and 0 <= current_index < len(contributors):
        default_text = contributors[current_index].name.dirty

    try:
        while True:
            result = session.prompt(
                "Buyer: ",
                default=default_text,
                complete_while_typing=True,
            )

            if not result:
                return None

            index = completer.name_to_index.get(result)
            if index is not None:
                logger.info(f"User selected buyer: {result}")
                return index

            print("❌ Unknown contributor. Press Tab to complete a name.")
            default_text = ""

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def confirm_delete(label: str) -> bool:
    """Simple yes/no confirmation before a structural delete."""
    response = input(f"Delete {label}? [y/N] ").strip().lower()
    return response in ("y", "yes")
