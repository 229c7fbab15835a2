"""Codec protocol: the narrow interface to a concrete artifact format."""

from typing import Protocol

from ddreduce.core.schema.artifact import Artifact


class ArtifactCodec(Protocol):
    """Parser/printer pair for one artifact format.

    The reduction engine never looks at the concrete grammar; it only needs
    to turn bytes into an Artifact and back.
    """

    name: str

    def parse(self, data: bytes) -> Artifact:
        """Parse input bytes.

        Raises:
            ParseError: If the bytes do not form a valid artifact
        """
        ...

    def render(self, artifact: Artifact) -> bytes:
        """Render an artifact (including placeholders) back to bytes."""
        ...
