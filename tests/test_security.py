import os
import sys
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from fastapi import HTTPException  # noqa: E402

from cv_assistant.core.security import check_api_key  # noqa: E402


class ApiKeyTests(unittest.TestCase):
    def test_public_mode_allows_anonymous_calls(self):
        with patch("cv_assistant.core.security.settings", SimpleNamespace(auth_mode="public", api_key="secret")):
            check_api_key(None)

    def test_protected_mode_requires_matching_key(self):
        protected = SimpleNamespace(auth_mode="protected", api_key="secret")
        with patch("cv_assistant.core.security.settings", protected):
            check_api_key("secret")
            with self.assertRaises(HTTPException) as ctx:
                check_api_key("wrong")
        self.assertEqual(ctx.exception.status_code, 401)


if __name__ == "__main__":
    unittest.main()
