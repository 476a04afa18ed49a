# plugins/core_assets/tests/test_deletion.py

import json
from pathlib import Path

import pytest

from plugins.core_assets.contracts import (
    AssetNotFoundError, AssetValidationError, SandboxViolationError
)
from plugins.core_assets.deletion import DeletionCoordinator


@pytest.fixture
def coordinator(layout, store) -> DeletionCoordinator:
    return DeletionCoordinator(layout, store)


class TestCascade:
    async def test_model_cascade(self, coordinator, write_file, store, asset_root):
        write_file("Models/AR/Foo.glb")
        write_file("Models/AR/Foo_tex.png")
        write_file("Previews/model-ar-foo.webp")
        write_file("Models/AR/Other.glb")
        await store.regenerate()

        result = await coordinator.delete("Models/AR/Foo.glb")

        assert set(result.removed) == {
            "Models/AR/Foo.glb", "Models/AR/Foo_tex.png", "Previews/model-ar-foo.webp"
        }
        for relative in result.removed:
            assert not (asset_root / relative).exists()
        manifest = json.loads(store.manifest_path.read_text())
        assert [a["file"] for a in manifest["assets"]] == ["Models/AR/Other.glb"]

    async def test_all_texture_extensions_are_removed(self, coordinator, write_file, asset_root):
        write_file("Models/SMG/Vector.glb")
        write_file("Models/SMG/Vector_tex.jpg")
        write_file("Models/SMG/Vector_tex.webp")

        await coordinator.delete("Models/SMG/Vector.glb")

        assert not any((asset_root / "Models/SMG").iterdir())

    async def test_skin_cascade(self, coordinator, write_file, asset_root):
        write_file("Shotgun/Tiger.png")
        write_file("Previews/skin-shotgun-tiger.webp")

        result = await coordinator.delete("Shotgun/Tiger.png")

        assert result.removed == ["Previews/skin-shotgun-tiger.webp", "Shotgun/Tiger.png"]
        assert not (asset_root / "Previews/skin-shotgun-tiger.webp").exists()

    async def test_special_cascade(self, coordinator, write_file, asset_root):
        write_file("Special/Galaxy.png")
        write_file("Previews/special-galaxy.webp")
        await coordinator.delete("Special/Galaxy.png")
        assert not (asset_root / "Previews/special-galaxy.webp").exists()

    async def test_missing_companions_are_not_errors(self, coordinator, write_file):
        write_file("AR/Plain.png")
        result = await coordinator.delete("AR/Plain.png")
        assert result.removed == ["AR/Plain.png"]

    async def test_skin_texture_lookalike_is_kept(self, coordinator, write_file, asset_root):
        """只有模型才有贴图伴随文件。"""
        write_file("AR/Foo.png")
        write_file("AR/Foo_tex.png")
        await coordinator.delete("AR/Foo.png")
        assert (asset_root / "AR/Foo_tex.png").exists()


class TestRejections:
    @pytest.mark.parametrize("path", ["../../etc/passwd", "AR/../../outside.png", "/etc/passwd", "C:/Windows/win.ini"])
    async def test_traversal_is_rejected_without_touching_files(self, coordinator, path, monkeypatch):
        def forbidden(*args, **kwargs):
            raise AssertionError("filesystem accessed for a rejected path")

        monkeypatch.setattr(Path, "is_file", forbidden)
        monkeypatch.setattr(Path, "unlink", forbidden)
        monkeypatch.setattr(Path, "resolve", forbidden)

        with pytest.raises(SandboxViolationError, match="Invalid path"):
            await coordinator.delete(path)

    async def test_symlink_escape_is_rejected(self, coordinator, asset_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "victim.png").write_bytes(b"keep me")
        (asset_root / "AR").symlink_to(outside, target_is_directory=True)

        with pytest.raises(SandboxViolationError):
            await coordinator.delete("AR/victim.png")
        assert (outside / "victim.png").exists()

    async def test_missing_file(self, coordinator):
        with pytest.raises(AssetNotFoundError, match="File not found"):
            await coordinator.delete("AR/ghost.png")

    async def test_directory_is_not_deletable(self, coordinator, asset_root):
        (asset_root / "AR").mkdir()
        with pytest.raises(AssetNotFoundError):
            await coordinator.delete("AR")

    @pytest.mark.parametrize("path", [None, "", "   "])
    async def test_no_file_specified(self, coordinator, path):
        with pytest.raises(AssetValidationError, match="No file specified"):
            await coordinator.delete(path)


class TestExpectedPreview:
    @pytest.mark.parametrize("relative, expected", [
        ("Models/AR/Foo.glb", "Previews/model-ar-foo.webp"),
        ("Models/Shotgun/Pump.glb", "Previews/model-shotgun-pump.webp"),
        ("Models/Pistol/P.glb", "Previews/model-pistol-p.webp"),
        ("Special/Galaxy.png", "Previews/special-galaxy.webp"),
        ("AWP/Neon.PNG", "Previews/skin-awp-neon.webp"),
        ("DefaultModels/ar.glb", None),
    ])
    def test_expected_preview(self, coordinator, relative, expected):
        assert coordinator.expected_preview(relative) == expected
