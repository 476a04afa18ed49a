# plugins/core_assets/tests/test_scanner.py

import logging

import pytest

from plugins.core_assets.scanner import FolderScanner


@pytest.fixture
def scanner(layout) -> FolderScanner:
    return FolderScanner(layout)


def _by_id(assets):
    return {a.id: a for a in assets}


class TestDiscovery:
    def test_empty_tree_yields_nothing(self, scanner):
        """所有分类目录都不存在时，扫描结果为空而不是报错。"""
        assert scanner.scan_all() == []

    def test_skin_round_trip(self, scanner, write_file):
        write_file("AR/Dragon.png", b"12345")
        [asset] = scanner.scan_all()

        assert asset.id == "skin-ar-dragon"
        assert asset.type == "skin"
        assert asset.weapon == "ar"
        assert asset.file == "AR/Dragon.png"
        assert asset.name == "Dragon AR"
        assert asset.description == "Dragon-themed AR skin"
        assert asset.size == 5
        assert asset.required is False
        # 没有专用预览时用皮肤文件本身
        assert asset.preview == "AR/Dragon.png"

    def test_every_skin_folder_is_scanned(self, scanner, write_file):
        for folder in ("AR", "AWP", "Shotgun", "SMG"):
            write_file(f"{folder}/Camo.jpg")
        ids = set(_by_id(scanner.scan_all()))
        assert ids == {"skin-ar-camo", "skin-awp-camo", "skin-shotgun-camo", "skin-smg-camo"}

    def test_special_asset(self, scanner, write_file):
        write_file("Special/Galaxy.webp")
        [asset] = scanner.scan_all()
        assert asset.id == "special-galaxy"
        assert asset.weapon is None
        assert asset.name == "Galaxy"
        assert asset.description == "Galaxy special skin for all weapons"

    def test_model_asset(self, scanner, write_file):
        write_file("Models/SMG/Vector.glb", b"glTF")
        [asset] = scanner.scan_all()
        assert asset.id == "model-smg-vector"
        assert asset.file == "Models/SMG/Vector.glb"
        assert asset.description == "Custom Vector weapon model"
        assert asset.texture is None
        assert asset.preview is None

    def test_dedicated_skin_preview_wins(self, scanner, write_file):
        write_file("AWP/Neon.png")
        write_file("Previews/skin-awp-neon.webp")
        [asset] = scanner.scan_all()
        assert asset.preview == "Previews/skin-awp-neon.webp"


class TestFiltering:
    def test_extension_filter_is_case_insensitive(self, scanner, write_file):
        write_file("AR/Loud.PNG")
        write_file("AR/notes.txt")
        write_file("Models/AR/Rifle.GLB")
        write_file("Models/AR/Rifle.fbx")

        ids = set(_by_id(scanner.scan_all()))
        assert ids == {"skin-ar-loud", "model-ar-rifle"}

    def test_directories_are_ignored(self, scanner, asset_root, write_file):
        (asset_root / "AR" / "folder.png").mkdir(parents=True)
        write_file("AR/Real.png")
        assert [a.id for a in scanner.scan_all()] == ["skin-ar-real"]

    def test_files_in_unknown_folders_are_ignored(self, scanner, write_file):
        write_file("Pistol/Gold.png")
        write_file("Models/Pistol/Gold.glb")
        assert scanner.scan_all() == []

    def test_previews_folder_is_not_a_category(self, scanner, write_file):
        write_file("Previews/skin-ar-ghost.webp")
        assert scanner.scan_all() == []


class TestModelCompanions:
    def test_texture_and_dedicated_preview(self, scanner, write_file):
        write_file("Models/AR/Foo.glb")
        write_file("Models/AR/Foo_tex.png")
        write_file("Models/AR/Foo.png")
        write_file("Previews/model-ar-foo.webp")

        [asset] = scanner.scan_all()
        assert asset.texture == "Models/AR/Foo_tex.png"
        assert asset.preview == "Previews/model-ar-foo.webp"

    def test_legacy_same_folder_preview(self, scanner, write_file):
        write_file("Models/AR/Foo.glb")
        write_file("Models/AR/Foo.jpg")
        [asset] = scanner.scan_all()
        assert asset.preview == "Models/AR/Foo.jpg"

    def test_texture_extension_order(self, scanner, write_file):
        """多个贴图并存时按扩展名白名单顺序取第一个。"""
        write_file("Models/AWP/Bolt.glb")
        write_file("Models/AWP/Bolt_tex.webp")
        write_file("Models/AWP/Bolt_tex.png")
        [asset] = scanner.scan_all()
        assert asset.texture == "Models/AWP/Bolt_tex.png"

    def test_texture_is_not_used_as_legacy_preview(self, scanner, write_file):
        write_file("Models/AR/Foo.glb")
        write_file("Models/AR/Foo_tex.png")
        [asset] = scanner.scan_all()
        assert asset.texture == "Models/AR/Foo_tex.png"
        assert asset.preview is None


class TestDuplicates:
    def test_duplicate_ids_keep_first(self, scanner, write_file, caplog):
        write_file("AR/Foo.png", b"first")
        write_file("AR/foo.jpg", b"second-file")

        with caplog.at_level(logging.WARNING, logger="plugins.core_assets.scanner"):
            assets = scanner.scan_all()

        assert len(assets) == 1
        assert assets[0].file == "AR/Foo.png"
        assert "Duplicate asset id 'skin-ar-foo'" in caplog.text

    def test_scan_folder_sorted_by_name(self, scanner, write_file, layout):
        for name in ("c.png", "a.png", "b.png"):
            write_file(f"AR/{name}")
        files = [f.file for f in scanner.scan_folder("AR", layout.image_exts)]
        assert files == ["AR/a.png", "AR/b.png", "AR/c.png"]
