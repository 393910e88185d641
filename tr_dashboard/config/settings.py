"""
Configuration settings for the TR dashboard backend.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


class Settings:
    """Application settings loaded from environment variables."""

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.parent.parent
    LOG_DIR = Path(os.getenv('LOG_DIR', str(PROJECT_ROOT / 'logs')))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # ============================================================================
    # Supabase Configuration (REST + Storage + RPC)
    # ============================================================================
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY', '')
    SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY', '')
    SUPABASE_TIMEOUT = int(os.getenv('SUPABASE_TIMEOUT', '30'))
    # Writes and destructive calls are never retried; keep at 0 unless reads need it
    SUPABASE_RETRY_ATTEMPTS = int(os.getenv('SUPABASE_RETRY_ATTEMPTS', '0'))
    STORAGE_BUCKET = os.getenv('STORAGE_BUCKET', 'mese-data')

    # ============================================================================
    # Tables
    # ============================================================================
    OVERVIEW_TABLE = os.getenv('OVERVIEW_TABLE', 'mese_overview')
    CYCLE_STATS_TABLE = os.getenv('CYCLE_STATS_TABLE', 'mese_cycle_stats')
    LEDGER_TABLE = os.getenv('LEDGER_TABLE', 'mese_ledger')
    PERSON_NODE_TABLE = os.getenv('PERSON_NODE_TABLE', 'mese_person_node')

    # ============================================================================
    # Ingestion / Aggregation
    # ============================================================================
    UPLOAD_BATCH_SIZE = int(os.getenv('UPLOAD_BATCH_SIZE', '100'))
    FETCH_PAGE_SIZE = int(os.getenv('FETCH_PAGE_SIZE', '1000'))
    LONG_CYCLE_DAYS = float(os.getenv('LONG_CYCLE_DAYS', '20'))
    DEFAULT_REPORT_YEAR = int(os.getenv('DEFAULT_REPORT_YEAR', '2025'))

    @classmethod
    def get_api_key(cls) -> str:
        """Privileged key when present, otherwise the public client key."""
        return cls.SUPABASE_SERVICE_ROLE_KEY or cls.SUPABASE_ANON_KEY

    @classmethod
    def validate_required_settings(cls, privileged: bool = False) -> list[str]:
        """
        Validate that all required settings are configured.
        Returns list of missing required settings.

        Args:
            privileged: Require the service role key (offline utilities)
        """
        missing = []

        if not cls.SUPABASE_URL:
            missing.append('SUPABASE_URL')

        if privileged:
            if not cls.SUPABASE_SERVICE_ROLE_KEY:
                missing.append('SUPABASE_SERVICE_ROLE_KEY')
        elif not cls.get_api_key():
            missing.append('SUPABASE_ANON_KEY')

        return missing


# Create settings instance
settings = Settings()
