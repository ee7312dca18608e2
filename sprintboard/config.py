"""Application settings, overridable from the environment."""
import os


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///sprintboard.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 'sql' keeps rows in SQLALCHEMY_DATABASE_URI, 'rest' talks to a hosted PostgREST backend
    DATA_BACKEND = os.environ.get('DATA_BACKEND', 'sql')
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')
    REST_TIMEOUT = float(os.environ.get('REST_TIMEOUT', 10))
    REST_RETRIES = int(os.environ.get('REST_RETRIES', 2))

    FETCH_WORKERS = int(os.environ.get('FETCH_WORKERS', 3))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    SEED_DEMO_DATA = _env_bool('SEED_DEMO_DATA')
