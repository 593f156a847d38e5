# tests/test_cli.py

from typer.testing import CliRunner

from cli import app
from plugins.core_assets.contracts import compute_checksum

runner = CliRunner()


class TestCli:

    def test_compile_to_stdout(self, asset_root):
        result = runner.invoke(app, ["compile", "a.js", "--root", str(asset_root)])
        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == b"var a = 1"

    def test_compile_to_file(self, asset_root, tmp_path):
        output = tmp_path / "out"
        result = runner.invoke(app, ["compile", "plain.css", "-r", str(asset_root), "-o", str(output)])
        assert result.exit_code == 0, result.output
        assert output.read_bytes() == b"p { margin: 0 }"

    def test_compile_missing_asset_fails(self, asset_root):
        result = runner.invoke(app, ["compile", "missing.css", "--root", str(asset_root)])
        assert result.exit_code == 1

    def test_invalid_root_fails(self, tmp_path):
        result = runner.invoke(app, ["compile", "a.js", "--root", str(tmp_path / "nope")])
        assert result.exit_code == 1

    def test_url_is_fingerprinted(self, asset_root, monkeypatch):
        monkeypatch.delenv("KILN_MOUNT", raising=False)
        result = runner.invoke(app, ["url", "a.js", "--root", str(asset_root)])
        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == f"/assets/a-{compute_checksum(b'var a = 1')}.js"
