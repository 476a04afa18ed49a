# plugins/core_assets/tests/test_store.py

import json

import aiofiles
import pytest

from plugins.core_assets.contracts import MANIFEST_VERSION, Manifest
from plugins.core_assets.layout import DEFAULT_PREVIEW_BASE_URL, AssetLayout
from plugins.core_assets.store import ManifestStore


class TestLoad:
    async def test_missing_manifest_gives_defaults(self, store):
        manifest = await store.load()
        assert manifest.version == MANIFEST_VERSION
        assert manifest.preview_base_url == ""
        assert manifest.assets == []
        assert store.current is manifest

    @pytest.mark.parametrize("content", [b"{not json", b'{"version": "three"}', b"\xff\xfe\x00garbage", b"[1, 2]"])
    async def test_corrupt_manifest_gives_defaults(self, store, content):
        store.manifest_path.write_bytes(content)
        manifest = await store.load()
        assert manifest.assets == []

    async def test_reads_existing_manifest(self, store):
        store.manifest_path.write_text(json.dumps({
            "version": 3,
            "updated": "2024-05-01T12:00:00Z",
            "previewBaseUrl": "https://custom.example/",
            "assets": [{
                "id": "special-galaxy", "type": "special", "name": "Galaxy",
                "description": "Galaxy special skin for all weapons",
                "file": "Special/Galaxy.png", "preview": "Special/Galaxy.png", "size": 3,
            }],
        }))
        manifest = await store.load()
        assert manifest.preview_base_url == "https://custom.example/"
        assert [a.id for a in manifest.assets] == ["special-galaxy"]


class TestRegenerate:
    async def test_regenerate_writes_manifest(self, store, write_file, layout):
        write_file("AR/Dragon.png")
        write_file("Models/AR/Foo.glb")

        manifest = await store.regenerate()

        on_disk = json.loads(store.manifest_path.read_text())
        assert on_disk["version"] == 3
        assert on_disk["previewBaseUrl"] == layout.preview_base_url
        assert {a["id"] for a in on_disk["assets"]} == {"skin-ar-dragon", "model-ar-foo"}
        assert len(manifest.assets) == 2

    async def test_absent_optional_fields_are_omitted(self, store, write_file):
        write_file("Models/AR/Foo.glb")
        await store.regenerate()
        [asset] = json.loads(store.manifest_path.read_text())["assets"]
        assert "texture" not in asset
        assert "preview" not in asset
        assert "weapon" in asset

    async def test_regeneration_is_idempotent(self, store, write_file):
        write_file("AR/Dragon.png")
        write_file("Special/Galaxy.png")
        write_file("Models/AWP/Bolt.glb")
        write_file("Models/AWP/Bolt_tex.png")

        first = await store.regenerate()
        second = await store.regenerate()

        assert set(first.assets) == set(second.assets)
        assert first.preview_base_url == second.preview_base_url

    async def test_preview_base_url_is_sticky(self, store, layout):
        await store.persist(Manifest(preview_base_url="https://pinned.example/"))
        manifest = await store.regenerate()
        assert manifest.preview_base_url == "https://pinned.example/"
        assert layout.preview_base_url != "https://pinned.example/"

    @pytest.mark.parametrize("bad_asset", [
        {"id": "special-galaxy", "type": "special", "name": "Galaxy", "description": "d",
         "file": "Special/Galaxy.png"},
        {"id": "skin-pistol-gold", "type": "skin", "weapon": "pistol", "name": "Gold", "description": "d",
         "file": "Pistol/Gold.png", "size": 1},
    ])
    async def test_preview_base_url_survives_schema_invalid_assets(self, store, write_file, bad_asset):
        """清单能解析但资产条目不合模型时，previewBaseUrl 仍然保留。"""
        store.manifest_path.write_text(json.dumps({
            "version": 3,
            "previewBaseUrl": "https://custom.example/",
            "assets": [bad_asset],
        }))
        write_file("AR/Dragon.png")

        loaded = await store.load()
        assert loaded.preview_base_url == "https://custom.example/"
        assert loaded.assets == []

        manifest = await store.regenerate()
        assert manifest.preview_base_url == "https://custom.example/"
        assert [a.id for a in manifest.assets] == ["skin-ar-dragon"]

    async def test_empty_preview_base_url_uses_default(self, asset_root):
        store = ManifestStore(AssetLayout.for_root(asset_root))
        manifest = await store.regenerate()
        assert manifest.preview_base_url == DEFAULT_PREVIEW_BASE_URL

    async def test_regenerate_replaces_assets_wholesale(self, store, write_file):
        skin = write_file("AR/Dragon.png")
        await store.regenerate()
        skin.unlink()
        manifest = await store.regenerate()
        assert manifest.assets == []


class TestPersist:
    async def test_persist_leaves_no_temp_file(self, store, asset_root):
        await store.persist(Manifest())
        assert sorted(p.name for p in asset_root.iterdir()) == ["manifest.json"]
        assert store.manifest_path.read_text().endswith("}\n")

    async def test_write_error_propagates_and_keeps_old_manifest(self, store, asset_root, monkeypatch):
        await store.persist(Manifest(preview_base_url="https://old.example/"))
        before = store.manifest_path.read_bytes()

        real_open = aiofiles.open

        def failing_open(path, *args, **kwargs):
            if str(path).endswith(".tmp"):
                raise OSError("disk full")
            return real_open(path, *args, **kwargs)

        monkeypatch.setattr("plugins.core_assets.store.aiofiles.open", failing_open)
        with pytest.raises(OSError, match="disk full"):
            await store.persist(Manifest(preview_base_url="https://new.example/"))

        assert store.manifest_path.read_bytes() == before
        assert sorted(p.name for p in asset_root.iterdir()) == ["manifest.json"]

    async def test_manifest_path_override(self, asset_root, tmp_path):
        target = tmp_path / "out" / "store.json"
        store = ManifestStore(AssetLayout.for_root(asset_root, manifest_path=target))
        await store.regenerate()
        assert target.is_file()


def test_ensure_layout_creates_folders(store, asset_root):
    store.ensure_layout()
    assert (asset_root / "Previews").is_dir()
    assert (asset_root / "DefaultModels").is_dir()
