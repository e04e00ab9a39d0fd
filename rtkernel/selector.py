"""
Interactive choice between candidates.

The resolution core only depends on the Selector protocol: present a list of
(id, label) candidates and block until exactly one id is chosen or the
choice is cancelled.
"""

from typing import List, Optional, Protocol, Sequence, Tuple

from rich.console import Console
from rich.prompt import IntPrompt
from rich.table import Table

from rtkernel.common import console as default_console
from rtkernel.models import CandidateSet, Selection


Candidate = Tuple[str, str]


class Selector(Protocol):
    """Capability to pick one candidate."""

    def choose(self, candidates: Sequence[Candidate], title: str = "") -> Selection:
        """Return the id of exactly one candidate, or a cancelled Selection."""
        ...


def candidates_from(candidate_set: CandidateSet) -> List[Candidate]:
    """Turn a candidate set into (id, label) pairs, keeping its order."""
    return [(item.value, item.value) for item in candidate_set]


class RichPromptSelector:
    """Numbered menu in the terminal. Entering 0, Ctrl-C or Ctrl-D cancels."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or default_console

    def choose(self, candidates: Sequence[Candidate], title: str = "") -> Selection:
        candidates = list(candidates)
        if not candidates:
            return Selection.cancel()

        table = Table(title=title or None, show_header=True)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Candidate")
        show_labels = any(label != cid for cid, label in candidates)
        if show_labels:
            table.add_column("Details", style="dim")

        for number, (cid, label) in enumerate(candidates, start=1):
            row = [str(number), cid]
            if show_labels:
                row.append(label)
            table.add_row(*row)
        self.console.print(table)

        choices = [str(n) for n in range(len(candidates) + 1)]
        try:
            answer = IntPrompt.ask(
                "Select a number (0 to cancel)",
                console=self.console,
                choices=choices,
                show_choices=False,
            )
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return Selection.cancel()

        if answer == 0:
            return Selection.cancel()
        return Selection.chosen(candidates[answer - 1][0])
