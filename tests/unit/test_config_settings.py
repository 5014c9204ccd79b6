import pytest

pytest.importorskip("pydantic")

from docbot.core.config import Settings


def test_defaults_match_documented_values():
    cfg = Settings(_env_file=None)
    assert (cfg.CHUNK_SIZE, cfg.CHUNK_OVERLAP, cfg.MIN_CHUNK_LENGTH) == (1000, 200, 50)
    assert cfg.SEARCH_MAX_RESULTS == 20
    assert cfg.SEARCH_MIN_SCORE == 0.1
    assert cfg.CONTEXT_TOP_N == 10
    assert cfg.SYNC_INTERVAL_MINUTES == 2.0


def test_solr_core_url_joins_collection():
    cfg = Settings(_env_file=None, SOLR_URL="http://solr:8983/solr/", SOLR_COLLECTION="docs")
    assert cfg.solr_core_url == "http://solr:8983/solr/docs"


def test_environment_overrides_are_applied(monkeypatch):
    monkeypatch.setenv("CHUNK_SIZE", "500")
    monkeypatch.setenv("CHUNK_OVERLAP", "100")
    cfg = Settings(_env_file=None)
    assert (cfg.CHUNK_SIZE, cfg.CHUNK_OVERLAP) == (500, 100)


def test_overlap_must_be_smaller_than_chunk_size_negative():
    with pytest.raises(ValueError, match="CHUNK_OVERLAP must be less than CHUNK_SIZE"):
        Settings(_env_file=None, CHUNK_SIZE=100, CHUNK_OVERLAP=100)


def test_non_positive_values_are_rejected_negative():
    with pytest.raises(ValueError):
        Settings(_env_file=None, CHUNK_SIZE=0)
    with pytest.raises(ValueError):
        Settings(_env_file=None, SEARCH_MIN_SCORE=-1)
    with pytest.raises(ValueError):
        Settings(_env_file=None, SYNC_INTERVAL_MINUTES=0)


def test_unknown_fields_are_rejected_negative():
    with pytest.raises(ValueError):
        Settings(_env_file=None, NOT_A_SETTING="x")
