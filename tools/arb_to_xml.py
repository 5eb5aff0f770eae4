#!/usr/bin/env python3
"""Convert an ARB localization bundle into an XML string resources file."""
from __future__ import annotations

import argparse
import json
import os
import stat
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

L10N_DIR = "lib/l10n"
# The translation console keys already translated messages on this filename,
# so it should only change together with the console configuration.
DEFAULT_XML_PATH = f"{L10N_DIR}/intl_en_US.xml"
DEFAULT_ARB_PATH = f"{L10N_DIR}/intl_en.arb"

XML_HEADER = """<?xml version="1.0" encoding="utf-8"?>
<!--
  This file was automatically generated.
  Please do not edit it manually.
  It is based on lib/l10n/intl_en.arb.
-->
<resources>
"""
XML_FOOTER = "</resources>\n"

PLURAL_SUFFIXES = ["Zero", "One", "Two", "Few", "Many", "Other"]


@dataclass
class ResourceMeta:
    description: str
    plural: Optional[str] = None
    parameters: Optional[str] = None


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
        .replace(">", "&gt;")
        .replace("<", "&lt;")
    )


def substitute_placeholders(
    text: str, replacements: Dict[str, str], count: Optional[int] = None
) -> str:
    """Replace ``$name`` references with their replacement in one pass.

    Names are tried longest first at every ``$`` so that ``$foo`` does not
    match the start of ``$foobar``. Replacement text is never rescanned.
    ``count`` limits how many references are replaced.
    """
    names = sorted(replacements, key=len, reverse=True)
    out: List[str] = []
    pos = 0
    done = 0
    while True:
        idx = text.find("$", pos)
        if idx == -1 or (count is not None and done >= count):
            break
        for name in names:
            if text.startswith(name, idx + 1):
                out.append(text[pos:idx])
                out.append(replacements[name])
                pos = idx + 1 + len(name)
                done += 1
                break
        else:
            out.append(text[pos : idx + 1])
            pos = idx + 1
    out.append(text[pos:])
    return "".join(out)


def parse_parameters(raw: str, resource_id: str) -> List[str]:
    if not raw.strip():
        raise ValueError(f"Empty 'parameters' for resource {resource_id!r}")
    parameters = [part.strip() for part in raw.split(",")]
    if any(not name for name in parameters):
        raise ValueError(
            f"Blank parameter name in {raw!r} for resource {resource_id!r}"
        )
    return parameters


def positional_placeholders(parameters: List[str]) -> Dict[str, str]:
    # A repeated name keeps its first position.
    placeholders: Dict[str, str] = {}
    for index, name in enumerate(parameters, start=1):
        placeholders.setdefault(name, f"%{index}$s")
    return placeholders


def parse_meta(key: str, value: Any) -> ResourceMeta:
    if not isinstance(value, dict):
        raise ValueError(f"Metadata {key!r} must be an object")
    description = value.get("description")
    if not isinstance(description, str):
        raise ValueError(f"Metadata {key!r} is missing a 'description' string")

    plural = value.get("plural")
    if plural is not None and (not isinstance(plural, str) or not plural):
        raise ValueError(f"Metadata {key!r} has an invalid 'plural' value")
    parameters = value.get("parameters")
    if parameters is not None and not isinstance(parameters, str):
        raise ValueError(f"Metadata {key!r} has a non-string 'parameters' value")

    return ResourceMeta(description=description, plural=plural, parameters=parameters)


def translation_for(bundle: Dict[str, Any], key: str) -> str:
    value = bundle.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Missing translation string for key {key!r}")
    return value


def render_plurals(resource_id: str, meta: ResourceMeta, bundle: Dict[str, Any]) -> str:
    # <plurals name="..." description="..."> with one <item> per quantity.
    assert meta.plural is not None
    selector = {meta.plural: "%d"}
    description = escape_xml(substitute_placeholders(meta.description, selector))

    lines = [
        "  <plurals",
        f'    name="{escape_xml(resource_id)}"',
        f'    description="{description}">',
    ]
    items = 0
    for suffix in PLURAL_SUFFIXES:
        plural_key = resource_id + suffix
        if plural_key not in bundle:
            continue
        translation = substitute_placeholders(
            translation_for(bundle, plural_key), selector, count=1
        )
        lines.append("    <item")
        lines.append(f'      quantity="{suffix.lower()}"')
        lines.append(f"      >{escape_xml(translation)}</item>")
        items += 1
    if not items:
        raise ValueError(
            f"No plural forms found for resource {resource_id!r} "
            f"(expected keys like {resource_id + 'Other'!r})"
        )
    lines.append("  </plurals>")
    return "\n".join(lines) + "\n"


def _string_element(resource_id: str, description: str, translation: str) -> str:
    return (
        "  <string\n"
        f'    name="{escape_xml(resource_id)}"\n'
        f'    description="{escape_xml(description)}"\n'
        f"    >{escape_xml(translation)}</string>\n"
    )


def render_parameterized_string(
    resource_id: str, meta: ResourceMeta, bundle: Dict[str, Any]
) -> str:
    """Render a string whose ``$vars`` become printf positional arguments.

    Each variable listed in ``parameters`` is replaced by ``%<n>$s`` in
    both the translation and the description, ``n`` being its position
    in the list.
    """
    assert meta.parameters is not None
    translation = translation_for(bundle, resource_id)
    placeholders = positional_placeholders(parse_parameters(meta.parameters, resource_id))
    return _string_element(
        resource_id,
        substitute_placeholders(meta.description, placeholders),
        substitute_placeholders(translation, placeholders),
    )


def render_string(resource_id: str, meta: ResourceMeta, bundle: Dict[str, Any]) -> str:
    return _string_element(
        resource_id, meta.description, translation_for(bundle, resource_id)
    )


def render_resources(bundle: Dict[str, Any]) -> List[str]:
    fragments: List[str] = []
    for key, value in bundle.items():
        # @@last_modified, @@locale and other bundle-level attributes
        if key.startswith("@@"):
            continue
        if not key.startswith("@"):
            continue

        resource_id = key[1:]
        meta = parse_meta(key, value)
        if meta.plural is not None:
            fragments.append(render_plurals(resource_id, meta, bundle))
        elif meta.parameters is not None:
            fragments.append(render_parameterized_string(resource_id, meta, bundle))
        else:
            fragments.append(render_string(resource_id, meta, bundle))
    return fragments


def assemble_document(fragments: List[str]) -> str:
    return XML_HEADER + "".join(fragments) + XML_FOOTER


def generate_xml(bundle: Dict[str, Any]) -> str:
    return assemble_document(render_resources(bundle))


def load_bundle(arb_path: str | Path) -> Dict[str, Any]:
    with Path(arb_path).open("r", encoding="utf-8") as handle:
        bundle = json.load(handle)
    if not isinstance(bundle, dict):
        raise ValueError(f"ARB bundle {arb_path} must contain a JSON object")
    return bundle


def generate_xml_from_arb(arb_path: str | Path = DEFAULT_ARB_PATH) -> str:
    return generate_xml(load_bundle(arb_path))


def read_resource_xml(xml_path: str | Path = DEFAULT_XML_PATH) -> str:
    return Path(xml_path).read_text(encoding="utf-8")


def _target_mode(xml_path: Path) -> int:
    if xml_path.exists():
        return stat.S_IMODE(xml_path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_document(document: str, xml_path: Path) -> None:
    xml_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            delete=False,
            dir=xml_path.parent,
            prefix=xml_path.name + ".tmp.",
        ) as handle:
            tmp_name = handle.name
            handle.write(document)
        os.chmod(tmp_name, _target_mode(xml_path))
        os.replace(tmp_name, xml_path)
    except OSError:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


def arb_to_xml(
    arb_path: str | Path = DEFAULT_ARB_PATH,
    xml_path: str | Path = DEFAULT_XML_PATH,
    dry_run: bool = False,
) -> int:
    """Regenerate an intl_*.xml file from an intl_*.arb file.

    With ``dry_run`` the document goes to stdout and ``xml_path`` is left
    untouched. Returns the number of resources written.
    """
    bundle = load_bundle(arb_path)
    fragments = render_resources(bundle)
    document = assemble_document(fragments)

    if dry_run:
        sys.stdout.write(document)
        sys.stdout.flush()
    else:
        write_document(document, Path(xml_path))
    return len(fragments)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an XML string resources file from an ARB bundle."
    )
    parser.add_argument(
        "--arb", default=DEFAULT_ARB_PATH, help="Path to input ARB file"
    )
    parser.add_argument(
        "--xml", default=DEFAULT_XML_PATH, help="Path to output XML file"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the generated XML to stdout instead of writing it",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    arb_path = Path(args.arb)
    xml_path = Path(args.xml)

    if not arb_path.is_file():
        print(f"ARB file not found: {arb_path}", file=sys.stderr)
        return 1

    try:
        count = arb_to_xml(arb_path, xml_path, dry_run=args.dry_run)
    except ValueError as exc:
        print(f"Failed to convert ARB: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"I/O error: {exc}", file=sys.stderr)
        return 1

    if not args.dry_run:
        print(f"resources_written: {count}")
        print(f"output: {xml_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
