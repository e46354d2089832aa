import pytest
from click.testing import CliRunner
from c2q.CLI.main import cli

COMPOSE = """\
name: app
services:
  web:
    image: nginx
    ports:
      - "8080:80"
  db:
    image: postgres
    depends_on:
      - web
"""


@pytest.fixture
def compose_file(tmp_path):
    path = tmp_path / "compose.yaml"
    path.write_text(COMPOSE)
    return str(path)


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Compose to Quadlet' in result.output
    assert 'compose' in result.output


def test_cli_compose_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['compose', '--help'])
    assert result.exit_code == 0
    assert '--pod' in result.output
    assert '--kube' in result.output


def test_cli_compose_stdout(compose_file):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', compose_file, 'compose'])
    assert result.exit_code == 0
    assert result.output == (
        "# web.container\n"
        "[Container]\n"
        "Image=nginx\n"
        "PublishPort=8080:80\n"
        "\n"
        "# db.container\n"
        "[Unit]\n"
        "Requires=web.service\n"
        "After=web.service\n"
        "\n"
        "[Container]\n"
        "Image=postgres\n"
    )


def test_cli_compose_stdin():
    runner = CliRunner()
    result = runner.invoke(cli, ['compose'], input="services:\n  web:\n    image: nginx\n")
    assert result.exit_code == 0
    assert "# web.container\n" in result.output


def test_cli_compose_pod_and_install(compose_file):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--pod', '--wanted-by', 'default.target'])
    assert result.exit_code == 0
    assert "# app.pod\n[Pod]\nPublishPort=8080:80\n\n[Install]\nWantedBy=default.target\n" in result.output
    assert "Pod=app.pod" in result.output


def test_cli_compose_kube(compose_file, tmp_path):
    runner = CliRunner()
    out = tmp_path / "out"
    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--kube', '-o', str(out)])
    assert result.exit_code == 0
    assert sorted(p.name for p in out.iterdir()) == ["app-kube.yaml", "app.kube"]
    assert (out / "app.kube").read_text() == "[Kube]\nYaml=app-kube.yaml\n"


def test_cli_pod_and_kube_exclusive(compose_file):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--pod', '--kube'])
    assert result.exit_code == 2
    assert 'mutually exclusive' in result.output


def test_cli_compose_out(compose_file, tmp_path):
    runner = CliRunner()
    out = tmp_path / "out"
    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--out', str(out)])
    assert result.exit_code == 0
    assert f"Wrote {out / 'web.container'}" in result.output
    assert (out / "db.container").exists()

    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--out', str(out)])
    assert result.exit_code == 1
    assert 'already exists' in result.output

    result = runner.invoke(cli, ['-f', compose_file, 'compose', '--out', str(out), '--overwrite'])
    assert result.exit_code == 0


def test_cli_unsupported_feature(tmp_path):
    path = tmp_path / "compose.yaml"
    path.write_text("services:\n  app:\n    build: .\n")
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', str(path), 'compose'])
    assert result.exit_code == 1
    assert 'error converting compose file into Quadlet files' in result.output
    assert 'Caused by:' in result.output
    assert '`build` is not supported' in result.output


def test_cli_missing_file(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', str(tmp_path / 'missing.yaml'), 'compose'])
    assert result.exit_code == 1
    assert 'could not open compose file' in result.output
