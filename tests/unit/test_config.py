"""Unit tests for environment-driven settings."""

from gradebook.core.config import Settings


class TestSettings:
    """Tests for settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch) -> None:
        """Test the defaults used when nothing is configured."""
        for name in ("DATABASE_URL", "DATABASE_ECHO", "CORS_ORIGINS", "ALLOWED_EXTENSIONS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert str(settings.DATABASE_URL).startswith("postgresql+psycopg2://")
        assert settings.DATABASE_ECHO is False
        assert settings.CORS_ORIGINS == ["*"]
        assert settings.ALLOWED_EXTENSIONS == [".xlsx"]

    def test_environment_overrides(self, monkeypatch) -> None:
        """Test that environment variables override the defaults."""
        monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg2://grader:secret@db:5432/grades")
        monkeypatch.setenv("DATABASE_ECHO", "true")
        monkeypatch.setenv("CORS_ORIGINS", '["https://school.example"]')

        settings = Settings(_env_file=None)

        assert str(settings.DATABASE_URL) == "postgresql+psycopg2://grader:secret@db:5432/grades"
        assert settings.DATABASE_ECHO is True
        assert settings.CORS_ORIGINS == ["https://school.example"]
