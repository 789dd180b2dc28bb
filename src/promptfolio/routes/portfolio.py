"""Portfolio preview API.

  POST /api/v1/portfolio/preview → rendered page for the submitted form

The preview needs no GitHub identity; the GitHub link uses ``github_login``
when given.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from promptfolio.content import render_html
from promptfolio.errors import ProfileIncomplete
from promptfolio.profile import Identity, ProfileForm, build_profile


class ProfileFormRequest(BaseModel):
    """Freeform profile form, one text box per section."""

    name: str = Field(default='', max_length=200)
    email: str = Field(default='', max_length=320)
    title: str = Field(default='', max_length=200)
    bio: str = ''
    skills: str = ''
    projects: str = ''
    experience: str = ''

    def to_form(self) -> ProfileForm:
        return ProfileForm(
            name=self.name,
            email=self.email,
            title=self.title,
            bio=self.bio,
            skills=self.skills,
            projects=self.projects,
            experience=self.experience,
        )


class PreviewRequest(ProfileFormRequest):
    github_login: str = Field(default='', max_length=100)


def profile_incomplete_response(exc: ProfileIncomplete) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            'error': 'profile_incomplete',
            'detail': str(exc),
            'missing': exc.missing,
        },
    )


def create_portfolio_router() -> APIRouter:
    router = APIRouter(prefix='/api/v1/portfolio', tags=['portfolio'])

    @router.post('/preview')
    async def preview(body: PreviewRequest):
        try:
            profile = build_profile(body.to_form())
        except ProfileIncomplete as exc:
            return profile_incomplete_response(exc)

        identity = Identity(login=body.github_login or 'your-username')
        return HTMLResponse(
            content=render_html(profile, identity),
            headers={'Content-Disposition': 'inline; filename="index.html"'},
        )

    return router
