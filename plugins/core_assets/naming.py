# plugins/core_assets/naming.py
"""
Naming convention shared by the scanner, the ingestion pipeline and the
deletion cascade. Companion files are linked to their primary file only by
these names, so all three sides must derive them from here.
"""
import os
from typing import Optional, Tuple, Union

from .contracts import AssetType, Weapon

TEXTURE_SUFFIX = "_tex"

WeaponLike = Union[Weapon, str, None]


def split_name(filename: str) -> Tuple[str, str]:
    """'AK_Red.PNG' -> ('AK_Red', '.PNG')"""
    return os.path.splitext(os.path.basename(filename))


def asset_stem(asset_type: Union[AssetType, str], name: str, weapon: WeaponLike = None) -> str:
    """`<type>-[<weapon>-]<lowercased name>`; used as both asset id and preview stem."""
    parts = [_value(asset_type)]
    if weapon:
        parts.append(_value(weapon))
    parts.append(name.lower())
    return "-".join(parts)


def preview_filename(asset_type: Union[AssetType, str], name: str, weapon: WeaponLike = None,
                     ext: str = ".webp") -> str:
    return asset_stem(asset_type, name, weapon) + ext


def texture_filename(model_name: str, ext: str) -> str:
    return f"{model_name}{TEXTURE_SUFFIX}{ext}"


def display_name(asset_type: Union[AssetType, str], name: str, weapon: WeaponLike = None) -> str:
    if _value(asset_type) == AssetType.SKIN.value and weapon:
        return f"{name} {_value(weapon).upper()}"
    return name


def description(asset_type: Union[AssetType, str], name: str, weapon: WeaponLike = None) -> str:
    kind = _value(asset_type)
    if kind == AssetType.SKIN.value:
        return f"{name}-themed {_value(weapon).upper()} skin"
    if kind == AssetType.MODEL.value:
        return f"Custom {name} weapon model"
    return f"{name} special skin for all weapons"


def _value(v: Optional[Union[Weapon, AssetType, str]]) -> str:
    return v.value if isinstance(v, (Weapon, AssetType)) else str(v)
