import os
from pathlib import Path

# app.database picks its engine at import time
os.environ.setdefault("PYTEST_RUN", "1")

from dotenv import load_dotenv
from cryptography.fernet import Fernet
import pytest

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')


@pytest.fixture
def vault():
    """TokenVault with a throwaway key."""
    from app.services.calendar.token_vault import TokenVault

    return TokenVault(Fernet.generate_key())
