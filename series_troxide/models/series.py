"""
Pydantic models for the tracked-series collection.

A `Series` is stored as one record in the datastore, keyed by its TVmaze id.
`SeriesCollection` is the versioned form used when the whole collection is
written to or read from a single file.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

CURRENT_DATA_VERSION = 1


class AddResult(str, Enum):
    """
    Outcome of adding a range of items.

    FULL when none of the items were present before, PARTIAL when some were,
    NONE when all of them were already present.
    """

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"

    @classmethod
    def from_counts(cls, added: int, total: int) -> "AddResult":
        if added == total:
            return cls.FULL
        if added == 0:
            return cls.NONE
        return cls.PARTIAL


class Season(BaseModel):
    """The watched episodes of one season."""

    episodes: set[int] = Field(default_factory=set)

    @field_serializer("episodes")
    def _serialize_episodes(self, episodes: set[int]) -> list[int]:
        return sorted(episodes)

    def track_episode(self, episode_number: int) -> bool:
        """Marks an episode watched. Returns True if it was newly added."""
        if episode_number in self.episodes:
            return False
        self.episodes.add(episode_number)
        return True

    def untrack_episode(self, episode_number: int) -> bool:
        """Returns True if the episode was being tracked."""
        if episode_number not in self.episodes:
            return False
        self.episodes.discard(episode_number)
        return True

    def is_episode_watched(self, episode_number: int) -> bool:
        return episode_number in self.episodes

    def get_last_episode(self) -> int | None:
        """
        Returns the highest watched episode, skipping any unwatched episode in
        between.
        """
        return max(self.episodes, default=None)

    def get_total_episodes(self) -> int:
        return len(self.episodes)


class Series(BaseModel):
    """
    A series in the user's collection.

    A series is created untracked; `mark_tracked` must be called explicitly.
    Episodes can be recorded for untracked series too, which is how watched
    history survives un-tracking.
    """

    id: int
    name: str
    is_tracked: bool = False
    seasons: dict[int, Season] = Field(default_factory=dict)

    def mark_tracked(self) -> None:
        self.is_tracked = True

    def mark_untracked(self) -> None:
        self.is_tracked = False

    def add_season(self, season_number: int) -> bool:
        """Returns True if the season was not present before."""
        if season_number in self.seasons:
            return False
        self.seasons[season_number] = Season()
        return True

    def remove_season(self, season_number: int) -> bool:
        return self.seasons.pop(season_number, None) is not None

    def get_season(self, season_number: int) -> Season | None:
        return self.seasons.get(season_number)

    def add_episode(self, season_number: int, episode_number: int) -> bool:
        """Adds an episode, creating its season when needed."""
        self.add_season(season_number)
        return self.seasons[season_number].track_episode(episode_number)

    def add_episodes(self, season_number: int, episodes: range) -> AddResult:
        added = sum(
            1 for episode in episodes if self.add_episode(season_number, episode)
        )
        return AddResult.from_counts(added, len(episodes))

    def remove_episode(self, season_number: int, episode_number: int) -> bool:
        season = self.seasons.get(season_number)
        if season is None:
            return False
        return season.untrack_episode(episode_number)

    def get_total_seasons(self) -> int:
        return len(self.seasons)

    def get_total_episodes(self) -> int:
        return sum(season.get_total_episodes() for season in self.seasons.values())

    def get_last_season(self) -> tuple[int, Season] | None:
        """
        Returns the highest season number with at least one watched episode,
        together with the season itself.
        """
        watched = [
            (number, season)
            for number, season in self.seasons.items()
            if season.get_total_episodes()
        ]
        return max(watched, key=lambda item: item[0], default=None)


class SeriesCollection(BaseModel):
    """
    The whole tracked-series collection, as written to a transfer file.

    Both fields are required and unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    version: int
    series: list[Series]

    @classmethod
    def new(cls, series: list[Series] | None = None) -> "SeriesCollection":
        return cls(version=CURRENT_DATA_VERSION, series=series or [])

    def is_compatible(self) -> bool:
        return self.version == CURRENT_DATA_VERSION
