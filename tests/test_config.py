# tests/test_config.py
import pytest
from pydantic import ValidationError

from invite_rewards.core.config import Settings


def test_directory_or_limit_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(DIRECTORY_MAX_OR_TERMS=0)
    assert Settings(DIRECTORY_MAX_OR_TERMS=1).DIRECTORY_MAX_OR_TERMS == 1
