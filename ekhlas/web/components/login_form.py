"""
Login page content: branding panel plus the email/password form.
"""
from typing import Dict, Optional

from .base import Component

FIELD_ERROR_EMAIL = "البريد الإلكتروني غير صحيح"
FIELD_ERROR_PASSWORD = "كلمة المرور لا تقل عن 6 أحرف"


class LoginForm(Component):
    """Sign-in card. Posts `email`, `password`, `remember` to /login."""

    def __init__(
        self,
        email: str = "",
        error: Optional[str] = None,
        field_errors: Optional[Dict[str, str]] = None,
        remember: bool = True,
    ):
        self.email = email
        self.error = error
        self.field_errors = field_errors or {}
        self.remember = remember

    def _field_error(self, name: str) -> str:
        message = self.field_errors.get(name)
        if not message:
            return ""
        return f'<p class="form-error" role="alert" id="{name}-error">{self.escape(message)}</p>'

    def render(self) -> str:
        error_html = f'<div class="alert alert-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        email_attrs = self.attributes(
            id="email",
            name="email",
            type="email",
            value=self.email,
            placeholder="name@school.com",
            autocomplete="email",
            dir="ltr",
            required=True,
            class_="form-input",
            aria_invalid="true" if "email" in self.field_errors else "false",
        )
        password_attrs = self.attributes(
            id="password",
            name="password",
            type="password",
            autocomplete="current-password",
            dir="ltr",
            required=True,
            minlength="6",
            class_="form-input",
            aria_invalid="true" if "password" in self.field_errors else "false",
        )
        remember_attrs = self.attributes(type="checkbox", name="remember", value="1", checked=self.remember)
        return f"""
        <div class="login-grid">
            <section class="login-brand" aria-hidden="true">
                <div class="login-brand-title">🏫 إدارة مدارس الإخلاص</div>
                <p class="text-muted">منصة موحّدة لإدارة المدارس باحتراف</p>
                <ul class="login-features">
                    <li>✅ إدارة طلاب ومعلمين وHR وصلاحيات دقيقة</li>
                    <li>✅ تقارير درجات وسلوك وغياب بشكل منظم</li>
                    <li>✅ مواعيد أولياء الأمور مع HR مع موافقات</li>
                </ul>
            </section>
            <section class="card login-card">
                <h1>تسجيل الدخول</h1>
                <p class="text-muted">ادخل بريدك الإلكتروني وكلمة المرور للمتابعة</p>
                {error_html}
                <form method="post" action="/login" class="login-form" novalidate>
                    <div class="form-field">
                        <label for="email" class="form-label">البريد الإلكتروني</label>
                        <input {email_attrs}>
                        {self._field_error("email")}
                    </div>
                    <div class="form-field">
                        <label for="password" class="form-label">كلمة المرور</label>
                        <input {password_attrs}>
                        {self._field_error("password")}
                    </div>
                    <label class="form-check"><input {remember_attrs}> تذكرني</label>
                    <div class="form-actions">
                        <button type="submit" class="btn btn-primary">دخول</button>
                    </div>
                </form>
            </section>
        </div>
        """
