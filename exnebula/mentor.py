from __future__ import annotations

import random

from .templates import DEFAULT_MENTOR_TABLES, MentorTables


class MentorResponseSelector:
    """
    Picks canned mentor replies.

    Stateless apart from the random source, which can be injected so tests
    can pin the draw.
    """

    def __init__(
        self,
        tables: MentorTables = DEFAULT_MENTOR_TABLES,
        rng: random.Random | None = None,
    ) -> None:
        self.tables = tables
        self.rng = rng or random.Random()

    def responses_for(self, goal: str | None) -> tuple[str, ...]:
        if goal is not None and goal in self.tables.by_goal:
            return self.tables.by_goal[goal]
        return self.tables.by_goal[self.tables.default_goal]

    def for_goal(self, goal: str | None) -> str:
        return self.rng.choice(self.responses_for(goal))

    def general(self) -> str:
        return self.rng.choice(self.tables.general)

    def reply(self, goal: str | None = None) -> str:
        """Category reply when the query names a goal, a general one otherwise."""
        if goal is None:
            return self.general()
        return self.for_goal(goal)
