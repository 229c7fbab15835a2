"""YAML module codec.

A YAML module is a list of named definitions, each with a kind, optional
nested ``body`` elements and named references to other elements::

    module: demo
    definitions:
    - name: helper
      kind: function
      body:
      - name: helper.ret
        kind: ret
    - name: main
      kind: function
      body:
      - name: main.call
        kind: call
        forwards: true
        refs:
          callee: helper

A reference whose target was removed is written as ``{undef: <shape>}`` where
the shape is the kind of the element it used to point at. Any other keys of
an element are carried through untouched.
"""

from io import StringIO
from typing import Any, Dict, List, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from ddreduce.core.errors import ParseError
from ddreduce.core.schema.artifact import Artifact, Element, Reference

RESERVED_KEYS = ("name", "kind", "refs", "body", "forwards")
UNDEF_KEY = "undef"


def _create_yaml_instance() -> YAML:
    """Create configured ruamel.yaml instance for module round-trips.

    Returns:
        YAML instance configured to:
        - Preserve quotes in carried-through attributes
        - Not wrap long strings
        - Use block style (not flow style)
    """
    yaml = YAML()
    yaml.preserve_quotes = True
    yaml.width = 4096
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    return yaml


class YamlModuleCodec:
    """Parser/printer for YAML modules (see module docstring for the layout)."""

    name = "yaml"

    def parse(self, data: bytes) -> Artifact:
        """Parse a YAML module into an Artifact.

        Raises:
            ParseError: On invalid YAML, a malformed element, a duplicate name
                        or a reference to an unknown element
        """
        try:
            doc = _create_yaml_instance().load(data.decode("utf-8"))
        except (YAMLError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to parse YAML: {e}") from e

        if not isinstance(doc, dict) or "definitions" not in doc:
            raise ParseError("Module must be a mapping with a 'definitions' list")
        definitions = doc["definitions"] or []
        if not isinstance(definitions, list):
            raise ParseError("'definitions' must be a list")

        nodes: List[Tuple[int, Dict[str, Any], Optional[int]]] = []
        ids_by_name: Dict[str, int] = {}
        kinds_by_name: Dict[str, str] = {}

        def collect(node: Any, parent: Optional[int]) -> None:
            if not isinstance(node, dict):
                raise ParseError(f"Element must be a mapping, got: {node!r}")
            name = node.get("name")
            kind = node.get("kind")
            if name is None or kind is None:
                raise ParseError(f"Element needs 'name' and 'kind': {dict(node)!r}")
            name = str(name)
            if name in ids_by_name:
                raise ParseError(f"Duplicate element name: {name}", location=name)
            element_id = len(nodes)
            ids_by_name[name] = element_id
            kinds_by_name[name] = str(kind)
            nodes.append((element_id, node, parent))
            body = node.get("body") or []
            if not isinstance(body, list):
                raise ParseError(f"'body' of {name} must be a list", location=name)
            for child in body:
                collect(child, element_id)

        for definition in definitions:
            collect(definition, None)

        elements = []
        for element_id, node, parent in nodes:
            name = str(node["name"])
            refs = self._parse_refs(name, node.get("refs"), ids_by_name, kinds_by_name)
            forwards = node.get("forwards", False)
            # YAML 1.2: "no", "off" and quoted "false" load as strings
            if not isinstance(forwards, bool):
                raise ParseError(f"'forwards' of {name} must be true or false", location=name)
            attrs = {k: v for k, v in node.items() if k not in RESERVED_KEYS}
            elements.append(Element(
                id=element_id,
                kind=str(node["kind"]),
                name=name,
                parent=parent,
                refs=refs,
                forwarding=forwards,
                attrs=attrs,
            ))

        header = {k: v for k, v in doc.items() if k != "definitions"}
        return Artifact(elements=tuple(elements), next_id=len(elements), meta={"header": header})

    def _parse_refs(
        self,
        owner: str,
        refs: Any,
        ids_by_name: Dict[str, int],
        kinds_by_name: Dict[str, str],
    ) -> Tuple[Reference, ...]:
        if refs is None:
            return ()
        if not isinstance(refs, dict):
            raise ParseError(f"'refs' of {owner} must be a mapping", location=owner)

        parsed = []
        for slot, value in refs.items():
            if isinstance(value, dict) and UNDEF_KEY in value:
                parsed.append(Reference(slot=str(slot), target=None, shape=str(value[UNDEF_KEY])))
                continue
            target = str(value)
            if target not in ids_by_name:
                raise ParseError(
                    f"{owner}.{slot} references unknown element '{target}'", location=owner
                )
            parsed.append(Reference(
                slot=str(slot), target=ids_by_name[target], shape=kinds_by_name[target]
            ))
        return tuple(parsed)

    def render(self, artifact: Artifact) -> bytes:
        """Render an Artifact back to a YAML module."""
        children: Dict[Optional[int], List[Element]] = {}
        for element in artifact.elements:
            children.setdefault(element.parent, []).append(element)

        def node(element: Element) -> CommentedMap:
            m = CommentedMap()
            m["name"] = element.name
            m["kind"] = element.kind
            if element.forwarding:
                m["forwards"] = True
            for key, value in element.attrs.items():
                m[key] = value
            if element.refs:
                refs = CommentedMap()
                for ref in element.refs:
                    if ref.target is None:
                        refs[ref.slot] = CommentedMap([(UNDEF_KEY, ref.shape)])
                    else:
                        refs[ref.slot] = artifact.get(ref.target).name
                m["refs"] = refs
            if element.id in children:
                m["body"] = [node(child) for child in children[element.id]]
            return m

        doc = CommentedMap()
        for key, value in artifact.meta.get("header", {}).items():
            doc[key] = value
        doc["definitions"] = [node(root) for root in children.get(None, [])]

        stream = StringIO()
        _create_yaml_instance().dump(doc, stream)
        return stream.getvalue().encode("utf-8")
