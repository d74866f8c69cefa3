import dataclasses
from typing import Dict, List, Mapping, Sequence, Tuple

from ..models import (
    Achievement,
    AchievementDefinition,
    DailyQuest,
    FarmEvent,
    QuestBook,
    QuestDefinition,
    QuestDelta,
)
from .time_helper import TimeHelper


class QuestHelper:
    """
    Tracks daily quests and achievements. Every method returns a new QuestBook and leaves its input untouched.

    Daily resets are lazy: a quest whose reset_at has passed is reset the next time any command or read looks
    at it, and its reset_at jumps straight to the next boundary after `now`, however many days were missed.
    """

    TIER_QUEST_KIND = "harvest_tier"

    def __init__(self, quest_definitions: Sequence[QuestDefinition],
                 achievement_definitions: Sequence[AchievementDefinition], tz_name: str = "US/Eastern"):
        self.quest_definitions: Dict[str, QuestDefinition] = {q.id: q for q in quest_definitions}
        self.achievement_definitions: Dict[str, AchievementDefinition] = {a.id: a for a in achievement_definitions}
        self.tz_name = tz_name

    def next_reset(self, now: float) -> float:
        return TimeHelper.next_daily_boundary(now, self.tz_name)

    def _new_quest(self, definition: QuestDefinition, now: float) -> DailyQuest:
        return DailyQuest(
            id=definition.id,
            requirement_kind=definition.kind,
            target=definition.target,
            reset_at=self.next_reset(now),
            min_tier=definition.min_tier,
        )

    @staticmethod
    def _new_achievement(definition: AchievementDefinition) -> Achievement:
        return Achievement(id=definition.id, requirement_kind=definition.kind, threshold=definition.threshold)

    def create_book(self, now: float) -> QuestBook:
        return QuestBook(
            quests=tuple(self._new_quest(q, now) for q in self.quest_definitions.values()),
            achievements=tuple(self._new_achievement(a) for a in self.achievement_definitions.values()),
        )

    def sync_definitions(self, book: QuestBook, now: float) -> QuestBook:
        """Attaches quests and achievements that were added to the data files after this book was created."""

        known_quests = {q.id for q in book.quests}
        known_achievements = {a.id for a in book.achievements}

        added_quests = [self._new_quest(q, now) for q_id, q in self.quest_definitions.items()
                        if q_id not in known_quests]
        added_achievements = [self._new_achievement(a) for a_id, a in self.achievement_definitions.items()
                              if a_id not in known_achievements]

        if not added_quests and not added_achievements:
            return book

        return QuestBook(
            quests=book.quests + tuple(added_quests),
            achievements=book.achievements + tuple(added_achievements),
        )

    def reset_expired(self, book: QuestBook, now: float) -> QuestBook:
        quests = []
        for quest in book.quests:
            if quest.reset_at <= now:
                quest = dataclasses.replace(quest, progress=0, claimed=False, reset_at=self.next_reset(now))
            quests.append(quest)
        return dataclasses.replace(book, quests=tuple(quests))

    @classmethod
    def matches(cls, quest: DailyQuest, event: FarmEvent) -> bool:
        if quest.requirement_kind == cls.TIER_QUEST_KIND:
            return event.kind == "harvest" and (event.tier or 0) >= quest.min_tier
        return quest.requirement_kind == event.kind

    @classmethod
    def apply_event(cls, book: QuestBook, event: FarmEvent) -> QuestBook:
        quests = []
        for quest in book.quests:
            if cls.matches(quest, event) and event.amount > 0:
                quest = dataclasses.replace(quest, progress=min(quest.target, quest.progress + event.amount))
            quests.append(quest)
        return dataclasses.replace(book, quests=tuple(quests))

    @staticmethod
    def unlock_achievements(book: QuestBook, counters: Mapping[str, int]) -> QuestBook:
        achievements = []
        for achievement in book.achievements:
            if not achievement.unlocked and counters.get(achievement.requirement_kind, 0) >= achievement.threshold:
                achievement = dataclasses.replace(achievement, unlocked=True)
            achievements.append(achievement)
        return dataclasses.replace(book, achievements=tuple(achievements))

    def refresh(self, book: QuestBook, counters: Mapping[str, int], now: float) -> QuestBook:
        return self.unlock_achievements(self.reset_expired(book, now), counters)

    def on_event(self, book: QuestBook, event: FarmEvent, counters: Mapping[str, int], now: float) -> QuestBook:
        book = self.reset_expired(book, now)
        book = self.apply_event(book, event)
        return self.unlock_achievements(book, counters)

    def on_events(self, book: QuestBook, events: Sequence[FarmEvent], counters: Mapping[str, int],
                  now: float) -> QuestBook:
        book = self.reset_expired(book, now)
        for event in events:
            book = self.apply_event(book, event)
        return self.unlock_achievements(book, counters)

    @staticmethod
    def quest_deltas(before: QuestBook, after: QuestBook) -> Tuple[QuestDelta, ...]:
        previous = {q.id: q.progress for q in before.quests}
        deltas: List[QuestDelta] = []
        for quest in after.quests:
            old_progress = previous.get(quest.id, 0)
            if quest.progress != old_progress:
                deltas.append(QuestDelta(
                    quest_id=quest.id,
                    progress_before=old_progress,
                    progress_after=quest.progress,
                    completed=quest.completed,
                ))
        return tuple(deltas)

    @staticmethod
    def newly_unlocked(before: QuestBook, after: QuestBook) -> Tuple[str, ...]:
        already = {a.id for a in before.achievements if a.unlocked}
        return tuple(a.id for a in after.achievements if a.unlocked and a.id not in already)
