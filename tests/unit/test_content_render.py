"""Portfolio page rendering tests."""

from __future__ import annotations

from promptfolio.content.render import CONTENT_PATH, initials, render, render_html
from promptfolio.profile.models import Experience, Identity, Profile, Project


def test_render_is_deterministic(ada_profile, ada_identity):
    assert render(ada_profile, ada_identity) == render(ada_profile, ada_identity)


def test_render_sections(ada_profile, ada_identity):
    html = render_html(ada_profile, ada_identity)

    assert html.startswith('<!DOCTYPE html>')
    assert '<title>Ada Lovelace - Portfolio</title>' in html
    assert '>AL</span>' in html
    assert 'href="mailto:a@b.com"' in html
    assert 'href="https://github.com/ada"' in html
    assert 'Analysis' in html and 'Engines' in html
    assert 'Note G' in html
    assert 'Punch cards' in html
    assert '&copy; Ada Lovelace.' in html


def test_project_link_is_optional(ada_identity):
    profile = Profile(
        name='Ada',
        email='a@b.com',
        projects=(
            Project(title='Linked', description='d', link='https://example.com/linked'),
            Project(title='Unlinked', description='d'),
        ),
    )
    html = render_html(profile, ada_identity)
    assert html.count('href="https://example.com/linked"') == 1
    assert 'href="None"' not in html


def test_experience_rendered(ada_identity):
    profile = Profile(
        name='Ada',
        email='a@b.com',
        experience=(Experience('Author', 'Taylor', '1843', 'Translated notes'),),
    )
    html = render_html(profile, ada_identity)
    assert 'Taylor' in html
    assert '1843' in html


def test_bio_meta_is_truncated(ada_identity):
    profile = Profile(name='Ada', email='a@b.com', title='Writer', bio='x' * 400)
    html = render_html(profile, ada_identity)
    assert f'content="Writer - {"x" * 150}..."' in html


def test_render_is_utf8():
    profile = Profile(name='Zoë Ångström', email='z@example.com')
    data = render(profile, Identity(login='zoe'))
    assert 'Zoë Ångström'.encode('utf-8') in data
    assert initials('Zoë Ångström') == 'ZÅ'


def test_content_path():
    assert CONTENT_PATH == 'index.html'
