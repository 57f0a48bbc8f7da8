from policai_pipeline.config import DEFAULT_SOURCES, Settings, load_sources


def test_default_sources_when_registry_missing(tmp_path):
    sources = load_sources(str(tmp_path / "absent.yaml"))
    assert [s.id for s in sources] == ["dta", "diser", "csiro", "ahrc", "oaic", "nsw", "vic", "accc"]
    assert sources is not DEFAULT_SOURCES


def test_registry_file_replaces_defaults(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(
        "- id: qld\n"
        "  name: Queensland AI\n"
        "  url: https://www.qld.gov.au/ai\n",
        encoding="utf-8",
    )
    [source] = load_sources(str(path))
    assert source.id == "qld"
    assert source.url == "https://www.qld.gov.au/ai"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MAX_PAGES_PER_SOURCE", "2")
    monkeypatch.setenv("RELEVANCE_FLOOR", "0.6")
    settings = Settings()
    assert settings.MAX_PAGES_PER_SOURCE == 2
    assert settings.RELEVANCE_FLOOR == 0.6
    assert settings.FETCH_INTERVAL_SECONDS == 2.0
