from crudbasico.config import Settings


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("BIGQUERY_PROJECT_ID", "proj")
    monkeypatch.setenv("BIGQUERY_DATASET", "tareas")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.example, ,http://b.example")
    monkeypatch.setenv("PORT", "9000")

    settings = Settings.from_env()

    assert settings.project_id == "proj"
    assert settings.dataset_id == "tareas"
    assert settings.allowed_origins == ["http://a.example", "http://b.example"]
    assert settings.port == 9000
    assert settings.missing_store_vars() == []


def test_settings_defaults(monkeypatch):
    for name in ["BIGQUERY_PROJECT_ID", "BIGQUERY_DATASET", "DB_NAME", "BIGQUERY_TABLE", "ALLOWED_ORIGINS", "PORT"]:
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.dataset_id == "crudbasico"
    assert settings.table_id == "tasks"
    assert settings.port == 8080
    assert settings.allowed_origins == []
    assert settings.missing_store_vars() == ["BIGQUERY_PROJECT_ID"]


def test_db_name_fallback(monkeypatch):
    monkeypatch.delenv("BIGQUERY_DATASET", raising=False)
    monkeypatch.setenv("DB_NAME", "crudbasico_prod")
    assert Settings.from_env().dataset_id == "crudbasico_prod"
