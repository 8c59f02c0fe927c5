from jinja2 import Environment
from markupsafe import Markup

_env = Environment(autoescape=True)

BASE_WRAPPER = _env.from_string("""
<div style="font-family:Inter,Arial,sans-serif;font-size:16px;line-height:1.6">
  <h2 style="margin:0 0 8px">{{ platform }}</h2>
  {{ body }}
</div>
""")

WELCOME_BODY = _env.from_string("""
<p>Hi {{ name }},</p>
<p>An account has been created for you on {{ platform }}.</p>
<ul style="padding-left:20px;margin:0 0 16px">
  <li><strong>Email</strong>: {{ email }}</li>
  <li><strong>Password</strong>: {{ password }}</li>
  <li><strong>Role</strong>: {{ role }}</li>
</ul>
{% if courses %}
<p style="margin:16px 0 8px;font-weight:600">{{ courses_label }}</p>
<ul style="padding-left:20px;margin:0 0 16px">
  {% for title in courses %}<li>{{ title }}</li>{% endfor %}
</ul>
{% endif %}
<p><a href="{{ login_url }}" style="display:inline-block;padding:10px 16px;border-radius:8px;background:#7c3aed;color:#fff;text-decoration:none">Sign in</a></p>
<p style="color:#6b7280;font-size:12px">Please change your password after your first login.</p>
""")

COURSES_LABEL = {
    "student": "You are enrolled in:",
    "trainer": "You are assigned to teach:",
}


def render_account_welcome(
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    courses: list[str],
    login_url: str,
    platform: str,
) -> tuple[str, str]:
    body = WELCOME_BODY.render(
        name=name,
        email=email,
        password=password,
        role=role,
        courses=courses,
        courses_label=COURSES_LABEL.get(role, "Your courses:"),
        login_url=login_url,
        platform=platform,
    )
    subject = f"Welcome to {platform}"
    return subject, BASE_WRAPPER.render(platform=platform, body=Markup(body))
