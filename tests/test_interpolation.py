import pytest

from dropkick.errors import TemplateRenderError, UnboundVariableError
from dropkick.file_filter import is_binary, strip_template_suffix
from dropkick.interpolation import Interpolator, needs_rendering


class TestInterpolator:
    """Test suite for placeholder interpolation."""

    def setup_method(self):
        self.context = {"name": "demo-app", "pascal_name": "DemoApp"}

    def test_replaces_placeholders(self):
        result = Interpolator().render("image: {{ name }}\nclass {{ pascal_name }}:\n", self.context)
        assert result == "image: demo-app\nclass DemoApp:\n"

    def test_keeps_trailing_newline(self):
        assert Interpolator().render("{{ name }}\n\n", self.context) == "demo-app\n\n"

    def test_text_without_markers_is_untouched(self):
        text = "FROM rust:1.75\r\nWORKDIR /app\n"
        assert Interpolator().render(text, {}) is text

    def test_rendering_twice_matches_once(self):
        """With every placeholder bound, a second pass changes nothing."""
        interpolator = Interpolator()
        once = interpolator.render("# {{ pascal_name }} ({{ name }})\n", self.context)
        assert interpolator.render(once, self.context) == once

    def test_strict_mode_raises_for_unbound(self):
        with pytest.raises(UnboundVariableError) as exc_info:
            Interpolator(strict=True).render("{{ missing }}", self.context, source="t/README.md.tt")
        assert exc_info.value.variable == "missing"
        assert "t/README.md.tt" in str(exc_info.value)

    def test_lenient_mode_keeps_unbound_placeholder(self):
        result = Interpolator(strict=False).render("{{ name }} {{ missing }}\n", self.context)
        assert result == "demo-app {{ missing }}\n"

    def test_lenient_mode_keeps_dotted_placeholder(self):
        """CI expressions such as ${{ secrets.TOKEN }} survive lenient rendering."""
        text = "token: ${{ secrets.TOKEN }}\nimage: {{ name }}\n"
        result = Interpolator(strict=False).render(text, self.context)
        assert result == "token: ${{ secrets.TOKEN }}\nimage: demo-app\n"

    def test_invalid_syntax(self):
        with pytest.raises(TemplateRenderError):
            Interpolator().render("{{ name ", self.context)

    def test_needs_rendering(self):
        assert needs_rendering("{{ name }}")
        assert needs_rendering("{% if x %}{% endif %}")
        assert not needs_rendering("plain text { braces }")


class TestFileFilter:
    """Test suite for binary detection and .tt handling."""

    def test_binary_detection(self):
        assert is_binary(b"\x00\x01\x02")
        assert is_binary(b"\xff\xfe\xfa")
        assert is_binary(b"not really an image", "logo.png")
        assert not is_binary("héllo {{ name }}\n".encode("utf-8"))
        assert not is_binary(b"", "Dockerfile")

    def test_strip_template_suffix(self):
        assert strip_template_suffix("src/main.rs.tt") == "src/main.rs"
        assert strip_template_suffix("Dockerfile") == "Dockerfile"
        assert strip_template_suffix(".tt") == ".tt"


class TestLenientFilters:
    """Test suite for filters applied to unknown placeholders."""

    def setup_method(self):
        self.interpolator = Interpolator(strict=False)

    def test_filter_on_unknown_placeholder_is_kept(self):
        assert self.interpolator.render("v={{ missing | upper }}\n", {}) == "v={{ missing | upper }}\n"

    def test_filter_arguments_are_kept(self):
        result = self.interpolator.render("{{ missing | replace('a', 'b') | lower }}", {})
        assert result == "{{ missing | replace('a', 'b') | lower }}"

    def test_filters_on_known_values_still_apply(self):
        assert self.interpolator.render("{{ name | upper }}", {"name": "demo-app"}) == "DEMO-APP"

    def test_default_filter_fills_in_missing_values(self):
        assert self.interpolator.render("{{ missing | default('x') }}", {}) == "x"
