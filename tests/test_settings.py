"""Tests for configuration loading and validation."""

import pytest
from pydantic import ValidationError

from sift.config.settings import ChunkingConfig, EmbeddingConfig, IngestionConfig, RetrievalConfig, Settings


class TestDefaults:

    def test_engine_defaults(self):
        config = Settings(_env_file=None)
        assert config.chunking == ChunkingConfig(max_chunk_size=512, min_chunk_size=100, overlap=50)
        assert config.embedding.batch_size == 16
        assert config.embedding.retry_attempts == 3
        assert config.embedding.rate_limit_delay == pytest.approx(0.1)
        assert config.embedding.concurrency == 4
        assert config.retrieval.default_top_k == 5
        assert config.retrieval.similarity_threshold == pytest.approx(0.3)
        assert config.retrieval.rerank_results is True
        assert config.retrieval.max_context_chars == 2000
        assert config.ingestion.document_batch_size == 50

    def test_engine_config_groups(self):
        groups = Settings(_env_file=None).engine_config()
        assert set(groups) == {"chunking", "embedding", "retrieval"}


class TestEnvironment:

    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("CHUNKING__MAX_CHUNK_SIZE", "400")
        monkeypatch.setenv("EMBEDDING__CONCURRENCY", "8")
        monkeypatch.setenv("RETRIEVAL__RERANK_RESULTS", "false")

        config = Settings(_env_file=None)

        assert config.chunking.max_chunk_size == 400
        assert config.chunking.min_chunk_size == 100
        assert config.embedding.concurrency == 8
        assert config.retrieval.rerank_results is False

    def test_base_url_trailing_slash_stripped(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434/")
        assert Settings(_env_file=None).OLLAMA_BASE_URL == "http://gpu-box:11434"

    def test_api_key_is_secret(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "super-secret-value")
        config = Settings(_env_file=None)
        assert "super-secret-value" not in repr(config)
        assert config.GOOGLE_API_KEY.get_secret_value() == "super-secret-value"

    def test_settings_are_frozen(self):
        config = Settings(_env_file=None)
        with pytest.raises(ValidationError):
            config.ENV = "prod"


class TestValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_chunk_size": 600},
            {"overlap": 512},
            {"max_chunk_size": 0},
            {"overlap": -1},
        ],
    )
    def test_chunking_bounds(self, kwargs):
        with pytest.raises(ValidationError):
            ChunkingConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"concurrency": 0},
            {"concurrency": 65},
            {"batch_size": 0},
            {"retry_attempts": 0},
            {"rate_limit_delay": -0.1},
            {"max_in_flight_requests": 0},
        ],
    )
    def test_embedding_bounds(self, kwargs):
        with pytest.raises(ValidationError):
            EmbeddingConfig(**kwargs)

    @pytest.mark.parametrize("threshold", [-1.5, 1.01])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValidationError):
            RetrievalConfig(similarity_threshold=threshold)

    def test_ingestion_batch_size(self):
        with pytest.raises(ValidationError):
            IngestionConfig(document_batch_size=0)

    def test_groups_are_frozen(self):
        config = EmbeddingConfig()
        with pytest.raises(ValidationError):
            config.batch_size = 2
