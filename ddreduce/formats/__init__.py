"""Concrete artifact codecs.

The reduction engine only needs ``parse`` and ``render``; these codecs make
the command-line tool usable out of the box:
- yaml: structured YAML modules with references (ddreduce.formats.yaml_module)
- lines: plain text, one element per line (ddreduce.formats.lines)
"""

from pathlib import Path
from typing import Dict, Optional, Type

from ddreduce.core.schema.codec import ArtifactCodec
from ddreduce.formats.lines import LinesCodec
from ddreduce.formats.yaml_module import YamlModuleCodec

CODECS: Dict[str, Type[ArtifactCodec]] = {
    YamlModuleCodec.name: YamlModuleCodec,
    LinesCodec.name: LinesCodec,
}

YAML_SUFFIXES = (".yaml", ".yml")


def get_codec(name: str = "auto", path: Optional[str] = None) -> ArtifactCodec:
    """Get a codec by name, or by file extension when ``name`` is "auto".

    Args:
        name: "yaml", "lines" or "auto"
        path: Input path used to pick a codec in "auto" mode

    Returns:
        Codec instance

    Raises:
        ValueError: If name is not recognized
    """
    if name == "auto":
        suffix = Path(path).suffix.lower() if path else ""
        name = YamlModuleCodec.name if suffix in YAML_SUFFIXES else LinesCodec.name

    if name not in CODECS:
        raise ValueError(
            f"Unknown format: {name}. "
            f"Available: auto, {', '.join(CODECS.keys())}"
        )
    return CODECS[name]()


__all__ = ["CODECS", "LinesCodec", "YamlModuleCodec", "get_codec"]
