"""Portfolio profile records and form parsing."""

from .form import ProfileForm, build_profile
from .models import Experience, Identity, Profile, Project

__all__ = [
    'Experience',
    'Identity',
    'Profile',
    'ProfileForm',
    'Project',
    'build_profile',
]
