import re
from pathlib import Path
from unittest.mock import patch

import pytest

from aabhalint import __version__
from aabhalint.__main__ import main

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


def _declared_version() -> str:
    match = re.search(r'^version\s*=\s*"([^"]+)"', PYPROJECT.read_text(), re.MULTILINE)
    assert match, "pyproject.toml declares no version"
    return match.group(1)


def test_package_version_is_declared_in_pyproject():
    assert __version__ == _declared_version()


def test_cli_reports_package_version(capsys):
    with patch("sys.argv", ["aabhalint", "--version"]), pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == f"aabhalint {__version__}"
