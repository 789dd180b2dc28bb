"""Freeform form input -> Profile.

The form has one text box per section. Skills are comma separated; projects
and experience are one entry per line with ``-`` separated parts:

    projects:    ``Title - Description``
    experience:  ``Title - Organization - Duration - Description``

Empty sections fall back to starter content so a fresh user still gets a
complete page.
"""

from __future__ import annotations

from dataclasses import dataclass

from promptfolio.errors import ProfileIncomplete

from .models import Experience, Profile, Project

DEFAULT_TITLE = 'Student'
DEFAULT_SKILLS = ('JavaScript', 'React', 'Node.js', 'HTML/CSS', 'Git', 'Python')
DEFAULT_PROJECT_TECH = ('JavaScript', 'React')
DEFAULT_PROJECT_LINK = 'https://github.com/example/project'

DEFAULT_PROJECTS = (
    Project(
        title='Portfolio Website',
        description=(
            'Responsive personal portfolio showcasing projects and skills '
            'with modern design.'
        ),
        tech=('React', 'TypeScript', 'Tailwind CSS'),
        link='https://github.com/example/portfolio',
    ),
    Project(
        title='Weather Dashboard',
        description=(
            'Real-time weather application with location-based forecasts '
            'and interactive charts.'
        ),
        tech=('JavaScript', 'Chart.js', 'OpenWeather API'),
        link='https://github.com/example/weather-app',
    ),
)

DEFAULT_EXPERIENCE = (
    Experience(
        title='Student',
        organization='University',
        duration='2022 - Present',
        description=(
            'Currently pursuing my degree with focus on practical application '
            'of technology and continuous learning.'
        ),
    ),
)


@dataclass(frozen=True, slots=True)
class ProfileForm:
    """Raw form fields as typed by the user."""

    name: str = ''
    email: str = ''
    title: str = ''
    bio: str = ''
    skills: str = ''
    projects: str = ''
    experience: str = ''


def default_bio(title: str) -> str:
    return (
        f'Passionate {title.lower()} with a strong foundation in technology '
        'and a drive to create innovative solutions. Currently pursuing my '
        'degree while building practical experience through hands-on '
        'projects and continuous learning.'
    )


def parse_skills(text: str) -> tuple[str, ...]:
    if not text.strip():
        return DEFAULT_SKILLS
    return tuple(s.strip() for s in text.split(',') if s.strip())


def _lines(text: str) -> list[str]:
    return [line for line in text.split('\n') if line.strip()]


def _part(parts: list[str], index: int, default: str) -> str:
    if index < len(parts) and parts[index].strip():
        return parts[index].strip()
    return default


def parse_projects(text: str) -> tuple[Project, ...]:
    if not text.strip():
        return DEFAULT_PROJECTS

    projects = []
    for line in _lines(text):
        parts = line.split('-')
        projects.append(
            Project(
                title=_part(parts, 0, 'Project'),
                description=_part(parts, 1, 'Project description'),
                tech=DEFAULT_PROJECT_TECH,
                link=DEFAULT_PROJECT_LINK,
            )
        )
    return tuple(projects)


def parse_experience(text: str) -> tuple[Experience, ...]:
    if not text.strip():
        return DEFAULT_EXPERIENCE

    entries = []
    for line in _lines(text):
        parts = line.split('-')
        entries.append(
            Experience(
                title=_part(parts, 0, 'Position'),
                organization=_part(parts, 1, 'Company'),
                duration=_part(parts, 2, '2025'),
                description=_part(parts, 3, 'Experience description'),
            )
        )
    return tuple(entries)


def build_profile(form: ProfileForm) -> Profile:
    """Turn raw form input into a Profile.

    Raises:
        ProfileIncomplete: If name or email is blank.
    """
    missing = [f for f in ('name', 'email') if not getattr(form, f).strip()]
    if missing:
        raise ProfileIncomplete(missing)

    title = form.title.strip() or DEFAULT_TITLE
    return Profile(
        name=form.name.strip(),
        email=form.email.strip(),
        title=title,
        bio=form.bio.strip() or default_bio(title),
        skills=parse_skills(form.skills),
        projects=parse_projects(form.projects),
        experience=parse_experience(form.experience),
    )
