"""Tests for placeholder substitution in notification templates."""

from fleet_notifications.models import (
    NotificationCategory,
    NotificationTemplate,
    NotificationType,
)
from fleet_notifications.services.template_renderer import (
    TemplateRenderer,
    render_template,
)


class TestRenderTemplate:
    def test_simple_substitution(self):
        assert render_template("Hello {{name}}", {"name": "Jane"}) == "Hello Jane"
        assert render_template("Hello {{missing}}", {"name": "Jane"}) == "Hello "

    def test_replaces_tokens_with_and_without_spaces(self):
        rendered = render_template(
            "Hi {{name}}, your {{ service }} is on {{date }}.",
            {"name": "Dana", "service": "pickup", "date": "Monday"},
        )
        assert rendered == "Hi Dana, your pickup is on Monday."

    def test_missing_keys_render_empty(self):
        assert render_template("Due {{due_date}}!", {}) == "Due !"

    def test_none_and_nested_values_render_empty(self):
        rendered = render_template(
            "[{{a}}][{{b}}][{{c}}]",
            {"a": None, "b": {"nested": 1}, "c": [1, 2]},
        )
        assert rendered == "[][][]"

    def test_non_string_scalars_are_stringified(self):
        assert render_template("{{n}} days, {{ok}}", {"n": 3, "ok": True}) == "3 days, True"

    def test_empty_template_renders_empty(self):
        assert render_template(None, {"a": 1}) == ""
        assert render_template("", None) == ""

    def test_repeated_token(self):
        assert render_template("{{x}}-{{x}}", {"x": "y"}) == "y-y"


class TestTemplateRenderer:
    def test_renders_subject_and_body(self):
        template = NotificationTemplate(
            name="Payment Due",
            slug="payment-due",
            type=NotificationType.EMAIL,
            category=NotificationCategory.PAYMENT_DUE,
            subject_template="Invoice #{{invoice_number}}",
            body_template="${{amount_due}} due {{due_date}}",
        )

        rendered = TemplateRenderer().render(
            template,
            {"invoice_number": "INV-7", "amount_due": "120.00", "due_date": "May 1"},
        )

        assert rendered.subject == "Invoice #INV-7"
        assert rendered.body == "$120.00 due May 1"
