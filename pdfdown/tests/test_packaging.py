import re
import unittest
from pathlib import Path

import pytest

tc = unittest.TestCase()

PROJECT_ROOT = Path(__file__).resolve().parents[2]
PYPROJECT = PROJECT_ROOT / "pyproject.toml"


@pytest.mark.skipif(not PYPROJECT.is_file(), reason="not running from a source checkout")
def test_long_description_is_the_readme() -> None:
    match = re.search(r'^readme\s*=\s*"([^"]+)"', PYPROJECT.read_text(), re.MULTILINE)

    tc.assertIsNotNone(match)
    tc.assertEqual("README.md", match.group(1))
    tc.assertTrue((PROJECT_ROOT / match.group(1)).is_file())
