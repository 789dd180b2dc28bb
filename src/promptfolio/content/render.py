"""Render a Profile into the single-page portfolio document.

``render`` is pure and deterministic: the same profile and identity always
produce the same bytes. Field values are interpolated as-is.
"""

from __future__ import annotations

from promptfolio.profile.models import Experience, Identity, Profile, Project

CONTENT_PATH = 'index.html'
BIO_META_LIMIT = 150

_MAIL_ICON = (
    '<svg class="w-5 h-5 mr-2" fill="none" stroke="currentColor" viewBox="0 0 24 24">'
    '<path stroke-linecap="round" stroke-linejoin="round" stroke-width="2" '
    'd="M3 8l7.89 4.26a2 2 0 002.22 0L21 8M5 19h14a2 2 0 002-2V7a2 2 0 00-2-2H5'
    'a2 2 0 00-2 2v10a2 2 0 002 2z"></path></svg>'
)

_LINK_ICON = (
    '<svg class="w-5 h-5" fill="none" stroke="currentColor" viewBox="0 0 24 24">'
    '<path stroke-linecap="round" stroke-linejoin="round" stroke-width="2" '
    'd="M10 6H6a2 2 0 00-2 2v10a2 2 0 002 2h10a2 2 0 002-2v-4M14 4h6m0 0v6m0-6L10 14">'
    '</path></svg>'
)


def initials(name: str) -> str:
    return ''.join(part[0] for part in name.split() if part)


def _skill_card(skill: str) -> str:
    return f"""
                    <div class="bg-white border border-gray-100 p-4 rounded-xl text-center hover:shadow-md transition-all">
                        <span class="font-semibold text-gray-800">{skill}</span>
                    </div>"""


def _project_card(project: Project) -> str:
    link = (
        f'<a href="{project.link}" class="flex items-center text-gray-600 '
        f'hover:text-gray-900 transition-colors">{_LINK_ICON}</a>'
        if project.link
        else ''
    )
    tags = ''.join(
        f'<span class="px-3 py-1 bg-gray-100 text-gray-700 rounded-full text-sm font-medium">{tech}</span>'
        for tech in project.tech
    )
    return f"""
                    <div class="bg-white border border-gray-100 rounded-2xl p-8 hover:shadow-lg transition-all">
                        <div class="flex items-start justify-between mb-4">
                            <h3 class="text-2xl font-bold text-gray-900">{project.title}</h3>
                            {link}
                        </div>
                        <p class="text-gray-600 mb-6 leading-relaxed text-lg">{project.description}</p>
                        <div class="flex flex-wrap gap-2">{tags}</div>
                    </div>"""


def _experience_card(exp: Experience) -> str:
    return f"""
                    <div class="bg-white border border-gray-100 rounded-2xl p-8">
                        <div class="flex flex-col md:flex-row md:items-center md:justify-between mb-4">
                            <div>
                                <h3 class="text-xl font-bold text-gray-900">{exp.title}</h3>
                                <p class="text-lg text-gray-600 font-medium">{exp.organization}</p>
                            </div>
                            <span class="text-gray-500 font-medium mt-2 md:mt-0">{exp.duration}</span>
                        </div>
                        <p class="text-gray-600 leading-relaxed">{exp.description}</p>
                    </div>"""


def render_html(profile: Profile, identity: Identity) -> str:
    skills = ''.join(_skill_card(s) for s in profile.skills)
    projects = ''.join(_project_card(p) for p in profile.projects)
    experience = ''.join(_experience_card(e) for e in profile.experience)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{profile.name} - Portfolio</title>
    <meta name="description" content="{profile.title} - {profile.bio[:BIO_META_LIMIT]}...">
    <script src="https://cdn.tailwindcss.com"></script>
    <link href="https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap" rel="stylesheet">
    <style>
        body {{ font-family: 'Inter', sans-serif; }}
    </style>
</head>
<body class="bg-white text-gray-900">
    <section class="min-h-screen flex items-center justify-center bg-gradient-to-br from-gray-50 to-white px-6">
        <div class="max-w-4xl mx-auto text-center">
            <div class="w-32 h-32 bg-gradient-to-br from-gray-900 to-gray-700 rounded-2xl mx-auto mb-8 flex items-center justify-center shadow-lg">
                <span class="text-3xl font-bold text-white">{initials(profile.name)}</span>
            </div>
            <h1 class="text-5xl md:text-6xl font-bold text-gray-900 mb-4 tracking-tight">{profile.name}</h1>
            <p class="text-2xl text-gray-600 font-medium mb-8">{profile.title}</p>
            <p class="text-lg text-gray-600 max-w-2xl mx-auto mb-12 leading-relaxed">{profile.bio}</p>
            <div class="flex items-center justify-center space-x-4 flex-wrap gap-4">
                <a href="mailto:{profile.email}" class="flex items-center px-6 py-3 bg-black text-white rounded-lg hover:bg-gray-800 transition-all">
                    {_MAIL_ICON}
                    Get in touch
                </a>
                <a href="https://github.com/{identity.login}" class="flex items-center px-6 py-3 border border-gray-200 text-gray-700 rounded-lg hover:bg-gray-50 transition-all">
                    GitHub
                </a>
            </div>
        </div>
    </section>

    <section class="py-20 px-6 bg-gray-50">
        <div class="max-w-4xl mx-auto">
            <h2 class="text-3xl font-bold text-gray-900 mb-8 text-center">Skills &amp; Technologies</h2>
            <div class="grid grid-cols-2 md:grid-cols-4 gap-4">{skills}
            </div>
        </div>
    </section>

    <section class="py-20 px-6">
        <div class="max-w-4xl mx-auto">
            <h2 class="text-3xl font-bold text-gray-900 mb-8 text-center">Featured Projects</h2>
            <div class="space-y-8">{projects}
            </div>
        </div>
    </section>

    <section class="py-20 px-6 bg-gray-50">
        <div class="max-w-4xl mx-auto">
            <h2 class="text-3xl font-bold text-gray-900 mb-8 text-center">Experience &amp; Education</h2>
            <div class="space-y-8">{experience}
            </div>
        </div>
    </section>

    <section class="py-20 px-6">
        <div class="max-w-3xl mx-auto">
            <div class="bg-black rounded-2xl p-12 text-center text-white">
                <h2 class="text-3xl font-bold mb-4">Let's work together</h2>
                <p class="text-lg mb-8 text-gray-300">
                    I'm always open to discussing new opportunities and interesting projects.
                </p>
                <a href="mailto:{profile.email}" class="inline-flex items-center px-8 py-4 bg-white text-black rounded-lg hover:bg-gray-100 transition-all font-semibold text-lg">
                    {_MAIL_ICON}
                    Send me an email
                </a>
            </div>
        </div>
    </section>

    <footer class="py-12 px-6 border-t border-gray-100">
        <div class="max-w-4xl mx-auto text-center">
            <p class="text-gray-500">&copy; {profile.name}. Built with PromptFolio.</p>
        </div>
    </footer>
</body>
</html>
"""


def render(profile: Profile, identity: Identity) -> bytes:
    """Materialize the portfolio page as UTF-8 bytes ready for upload."""
    return render_html(profile, identity).encode('utf-8')
