"""
Pydantic models for the documents served by the TVmaze API.

Only the fields the application reads are declared; everything else in a
response is ignored. Documents are cached verbatim, so these models are applied
on every read rather than once at fetch time.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class CatalogModel(BaseModel):
    """Base for TVmaze models: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Rating(CatalogModel):
    average: float | None = None


class Image(CatalogModel):
    original_image_url: str = Field(alias="original")
    medium_image_url: str = Field(alias="medium")


class Country(CatalogModel):
    name: str
    code: str | None = None


class Network(CatalogModel):
    name: str
    country: Country | None = None
    official_site_url: str | None = Field(default=None, alias="officialSite")


class WebChannel(CatalogModel):
    name: str
    official_site_url: str | None = Field(default=None, alias="officialSite")


class SeriesMainInformation(CatalogModel):
    id: int
    name: str
    language: str | None = None
    genres: list[str] = Field(default_factory=list)
    status: str | None = None
    average_runtime: int | None = Field(default=None, alias="averageRuntime")
    premiered: str | None = None
    ended: str | None = None
    rating: Rating = Field(default_factory=Rating)
    network: Network | None = None
    web_channel: WebChannel | None = Field(default=None, alias="webChannel")
    summary: str | None = None
    image: Image | None = None

    def get_network_name(self) -> str | None:
        if self.network:
            return self.network.name
        if self.web_channel:
            return self.web_channel.name
        return None

    def is_running(self) -> bool:
        return self.status == "Running"


class EmbeddedShow(CatalogModel):
    show: SeriesMainInformation


class Episode(CatalogModel):
    """
    An episode as returned by TVmaze.

    Local schedule entries carry the series in `show`; web schedule entries
    carry it under `_embedded`.
    """

    id: int | None = None
    name: str
    season: int
    number: int | None = None
    runtime: int | None = None
    airdate: str | None = None
    airtime: str = ""
    airstamp: datetime | None = None
    rating: Rating = Field(default_factory=Rating)
    image: Image | None = None
    summary: str | None = None
    show: SeriesMainInformation | None = None
    embedded: EmbeddedShow | None = Field(default=None, alias="_embedded")

    def get_show(self) -> SeriesMainInformation | None:
        if self.show:
            return self.show
        return self.embedded.show if self.embedded else None

    def is_future_release(self, now: datetime | None = None) -> bool:
        """
        Whether the episode airs after `now`. Episodes without an airstamp are
        treated as unreleased.
        """
        if self.airstamp is None:
            return True
        now = now or datetime.now(timezone.utc)
        airstamp = self.airstamp
        if airstamp.tzinfo is None:
            airstamp = airstamp.replace(tzinfo=timezone.utc)
        return airstamp > now


class SeasonListing(CatalogModel):
    """A season entry from the `/shows/{id}/seasons` endpoint."""

    id: int | None = None
    number: int
    episode_order: int | None = Field(default=None, alias="episodeOrder")
    premiere_date: str | None = Field(default=None, alias="premiereDate")
    end_date: str | None = Field(default=None, alias="endDate")


class Person(CatalogModel):
    name: str
    gender: str | None = None
    birthday: str | None = None
    deathday: str | None = None
    country: Country | None = None
    image: Image | None = None


class Character(CatalogModel):
    name: str
    image: Image | None = None


class Cast(CatalogModel):
    person: Person
    character: Character


class Crew(CatalogModel):
    kind: str = Field(alias="type")
    person: Person


class ImageResolution(CatalogModel):
    url: str
    width: int | None = None
    height: int | None = None


class ShowImage(CatalogModel):
    id: int | None = None
    kind: str | None = Field(default=None, alias="type")
    main: bool = False
    resolutions: dict[str, ImageResolution] = Field(default_factory=dict)

    def get_url(self, resolution: str = "original") -> str | None:
        image = self.resolutions.get(resolution)
        return image.url if image else None


class SeriesSearchResult(CatalogModel):
    score: float | None = None
    show: SeriesMainInformation


class BadResponse(CatalogModel):
    """The error body TVmaze sends instead of data, e.g. for unknown ids."""

    name: str
    message: str
