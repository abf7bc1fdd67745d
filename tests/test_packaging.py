"""
Checks on the project's packaging metadata.
"""

import re

from django.conf import settings
from django.test import SimpleTestCase


class PackagingMetadataTests(SimpleTestCase):

    def test_readme_points_at_project_readme(self):
        pyproject = (settings.BASE_DIR / 'pyproject.toml').read_text()

        match = re.search(r'^readme\s*=\s*"([^"]+)"', pyproject, re.MULTILINE)

        self.assertIsNotNone(match)
        self.assertEqual(match.group(1), 'README.md')
        self.assertTrue((settings.BASE_DIR / match.group(1)).is_file())
