"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables prefixed with CS_."""

    # Matching
    fuzzy_name_threshold: float = 0.85
    phone_suffix_length: int = 7
    default_country_digit: str = "1"

    # Confidence rule scores (applied in order, first match wins)
    score_exact_name_and_contact: int = 100
    score_contact_info: int = 85
    score_exact_name: int = 75
    score_fuzzy_phonetic: int = 65
    score_fuzzy: int = 50
    score_phonetic: int = 35

    # Grouping / merging defaults
    default_threshold: str = "MEDIUM"
    default_strategy: str = "conservative"

    # Candidate generation
    full_comparison_limit: int = 200
    max_block_size: int = 500
    pair_batch_size: int = 2000
    max_workers: int = 1

    model_config = {"env_file": ".env", "env_prefix": "CS_"}


def get_settings() -> Settings:
    """Return a Settings instance loaded from the environment."""
    return Settings()
