"""Portfolio domain records: profile, projects, experience, identity."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Project:
    title: str
    description: str
    tech: tuple[str, ...] = ()
    link: str | None = None


@dataclass(frozen=True, slots=True)
class Experience:
    title: str
    organization: str
    duration: str
    description: str


@dataclass(frozen=True, slots=True)
class Profile:
    """Immutable portfolio profile built from the input form."""

    name: str
    email: str
    title: str = ''
    bio: str = ''
    skills: tuple[str, ...] = ()
    projects: tuple[Project, ...] = ()
    experience: tuple[Experience, ...] = ()

    def missing_required(self) -> list[str]:
        """Return the required fields that are blank."""
        missing = []
        if not self.name.strip():
            missing.append('name')
        if not self.email.strip():
            missing.append('email')
        return missing

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        """Rebuild a profile from ``to_dict`` output (e.g. a stored snapshot)."""
        return cls(
            name=data.get('name', ''),
            email=data.get('email', ''),
            title=data.get('title', ''),
            bio=data.get('bio', ''),
            skills=tuple(data.get('skills', ())),
            projects=tuple(
                Project(
                    title=p.get('title', ''),
                    description=p.get('description', ''),
                    tech=tuple(p.get('tech', ())),
                    link=p.get('link'),
                )
                for p in data.get('projects', ())
            ),
            experience=tuple(
                Experience(
                    title=e.get('title', ''),
                    organization=e.get('organization', ''),
                    duration=e.get('duration', ''),
                    description=e.get('description', ''),
                )
                for e in data.get('experience', ())
            ),
        )


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated GitHub identity.

    Attributes:
        login: Unique handle; derives the Pages host and repository owner.
        name: Display name (falls back to ``login``).
        avatar_url: Avatar image URL.
        html_url: Public profile URL.
    """

    login: str
    name: str = ''
    avatar_url: str = ''
    html_url: str = ''
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
