"""
CLI tests using click's CliRunner.
Run with: pytest backend/tests/test_cli.py
"""

from click.testing import CliRunner

from dealpilot.cli import cli


def test_types_lists_every_flow():
    result = CliRunner().invoke(cli, ["types"])
    assert result.exit_code == 0
    assert "Non-Disclosure Agreement (NDA)" in result.output
    assert "Terms and Conditions" in result.output


def test_create_deal_prints_id():
    result = CliRunner().invoke(cli, ["create-deal", "--title", "Harbour Cafe Sale", "--asking-price", "450000"])
    assert result.exit_code == 0
    assert len(result.output.strip()) == 36


def test_local_chat_walks_first_step():
    result = CliRunner().invoke(
        cli,
        ["chat", "--deal-id", "deal-cli", "--user-id", "user-1", "--local"],
        input="1\nback\nquit\n",
    )
    assert result.exit_code == 0, result.output
    assert "Welcome!" in result.output
    assert "Who will be sharing confidential information" in result.output
    assert "(went back one step)" in result.output


def test_version_matches_package_metadata():
    from importlib.metadata import version

    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"dealpilot, version {version('dealpilot')}"
