"""Time-boxed plurality vote that picks a letter bias for the next draw."""

from dataclasses import dataclass, field

from bingo.logic.enums import Letter
from bingo.logic.exceptions import InvalidStateError


def _empty_tally() -> dict[Letter, int]:
    return dict.fromkeys(Letter, 0)


@dataclass
class VoteState:
    """Idle/active vote state machine for one room.

    `epoch` increases every time a vote starts, so a resolution scheduled for
    an earlier vote can tell it is stale.
    """

    active: bool = False
    deadline: float | None = None
    tally: dict[Letter, int] = field(default_factory=_empty_tally)
    voted_client_ids: set[str] = field(default_factory=set)
    epoch: int = 0

    @property
    def total_votes(self) -> int:
        return sum(self.tally.values())

    def has_voted(self, client_id: str) -> bool:
        return client_id in self.voted_client_ids

    def start(self, deadline: float) -> int:
        """Open a new vote closing at `deadline`. Return its epoch."""
        if self.active:
            raise InvalidStateError("A vote is already in progress")
        self._reset()
        self.active = True
        self.deadline = deadline
        self.epoch += 1
        return self.epoch

    def submit(self, client_id: str, letter: Letter) -> bool:
        """Count a vote. Returns False (vote dropped) if idle or already voted."""
        if not self.active or client_id in self.voted_client_ids:
            return False
        self.voted_client_ids.add(client_id)
        self.tally[letter] += 1
        return True

    def resolve(self) -> Letter | None:
        """Close the vote and return the winning letter.

        The strictly highest tally wins; ties go to the letter that comes first
        in B, I, N, G, O order. No votes at all resolves to None (no bias).
        """
        winner: Letter | None = None
        best = 0
        for letter, count in self.tally.items():
            if count > best:
                winner, best = letter, count
        self._reset()
        return winner

    def counts(self) -> dict[str, int]:
        return {letter.value: count for letter, count in self.tally.items()}

    def _reset(self) -> None:
        self.active = False
        self.deadline = None
        self.tally = _empty_tally()
        self.voted_client_ids = set()
