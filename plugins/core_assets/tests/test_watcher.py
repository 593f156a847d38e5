# plugins/core_assets/tests/test_watcher.py

import pytest

from plugins.core_assets.contracts import EPOCH, InvalidWatchRootError
from plugins.core_assets.watcher import DirectoryWatcher, mtime_of


class TestDirectoryWatcher:

    def test_add_root_rejects_non_directory(self, tmp_path):
        file_path = tmp_path / "not_a_dir.txt"
        file_path.write_text("x")
        watcher = DirectoryWatcher()

        with pytest.raises(InvalidWatchRootError):
            watcher.add_root(file_path)
        with pytest.raises(InvalidWatchRootError):
            watcher.add_root(tmp_path / "missing")
        assert watcher.roots == []

    def test_duplicate_roots_are_ignored(self, asset_root):
        watcher = DirectoryWatcher()
        watcher.add_root(asset_root)
        watcher.add_root(str(asset_root))
        assert watcher.roots == [asset_root.resolve()]

    def test_find_returns_first_match_in_registration_order(self, tmp_path):
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (first / "app.js").write_text("first")
        (second / "app.js").write_text("second")
        (second / "only.js").write_text("only")

        watcher = DirectoryWatcher()
        watcher.add_root(first)
        watcher.add_root(second)

        assert watcher.find("app.js") == str(first.resolve() / "app.js")
        assert watcher.find("only.js") == str(second.resolve() / "only.js")
        assert watcher.find("missing.js") is None

    def test_find_ignores_directories(self, asset_root):
        watcher = DirectoryWatcher()
        watcher.add_root(asset_root)
        assert watcher.find("css") is None
        assert watcher.find("css/nested.scss") is not None

    def test_dynamic_find_sees_new_files(self, asset_root):
        watcher = DirectoryWatcher(static=False)
        watcher.add_root(asset_root)
        assert watcher.find("late.js") is None

        (asset_root / "late.js").write_text("late")
        assert watcher.find("late.js") is not None

    def test_static_find_is_memoized(self, asset_root):
        """生产模式下，find 的结果（包括“没找到”）在进程生命周期内不变。"""
        watcher = DirectoryWatcher(static=True)
        watcher.add_root(asset_root)
        assert watcher.find("late.js") is None
        found = watcher.find("a.js")

        (asset_root / "late.js").write_text("late")
        (asset_root / "a.js").unlink()

        assert watcher.find("late.js") is None
        assert watcher.find("a.js") == found

    def test_latest_mod_time(self, asset_root, touch):
        watcher = DirectoryWatcher()
        watcher.add_root(asset_root)

        assert watcher.latest_mod_time(".coffee") == EPOCH

        nested = asset_root / "css" / "nested.scss"
        touch(nested, 100)
        # 递归扫描子目录
        assert watcher.latest_mod_time(".scss") == mtime_of(nested)
        assert watcher.latest_mod_time(".scss") > mtime_of(asset_root / "style.scss")
