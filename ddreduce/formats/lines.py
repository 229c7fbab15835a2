"""Line codec: every line of a text file is a top-level element.

Lines have no references, so repair never has anything to rewrite; this is
the classic "remove lines" reducer for formats without a structured codec.
"""

from ddreduce.core.schema.artifact import Artifact, Element

ENCODING = "utf-8"


class LinesCodec:
    """Parser/printer treating each line as an independent element."""

    name = "lines"

    def parse(self, data: bytes) -> Artifact:
        # surrogateescape keeps arbitrary bytes intact through the round-trip
        text = data.decode(ENCODING, errors="surrogateescape")
        trailing_newline = text.endswith("\n")
        lines = text.split("\n") if text else []
        if trailing_newline:
            lines.pop()
        elements = tuple(
            Element(id=i, kind="line", name=f"line{i + 1}", attrs={"text": line})
            for i, line in enumerate(lines)
        )
        return Artifact(
            elements=elements,
            next_id=len(elements),
            meta={"trailing_newline": trailing_newline},
        )

    def render(self, artifact: Artifact) -> bytes:
        text = "\n".join(e.attrs.get("text", "") for e in artifact.elements)
        if artifact.elements and artifact.meta.get("trailing_newline", False):
            text += "\n"
        return text.encode(ENCODING, errors="surrogateescape")
