#!/usr/bin/env python3
"""
KUBEPOLICY EXPORTER - High-Fidelity Round-Trip
----------------------------------------------
Renders retained round-trip documents back to YAML text. Key order and
comments come from the source tree; nothing is re-sorted.

Indentation is read back from each document: the round-trip loader
records the line and column of every key and sequence item, so a
manifest written in kubectl style (dashes level with their key) is
dumped in kubectl style again.

Author: KubePolicy Team
Date: 2026-10-19
"""

import io
from typing import Any, Iterator, List, Optional, Tuple, Union
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

# (mapping, sequence, offset) used when a document carries no hint
DEFAULT_LAYOUT = (2, 4, 2)


def round_trip_yaml(layout: Tuple[int, int, int] = DEFAULT_LAYOUT) -> YAML:
    """
    The single YAML configuration used for both loading and dumping,
    so a document read and written back keeps its shape.
    """
    mapping, sequence, offset = layout
    yaml = YAML(typ='rt')
    yaml.preserve_quotes = True
    yaml.indent(mapping=mapping, sequence=sequence, offset=offset)
    yaml.width = 4096
    return yaml


def _block_children(node: Any) -> Iterator[Tuple[CommentedMap, Any, Any]]:
    """Yields (parent, key, value) for nested block collections, depth first."""
    if isinstance(node, CommentedMap):
        for key, value in node.items():
            if isinstance(value, (CommentedMap, CommentedSeq)) and value and not value.fa.flow_style():
                yield node, key, value
            yield from _block_children(value)
    elif isinstance(node, CommentedSeq):
        for item in node:
            yield from _block_children(item)


def _mark(node: Any, index: Any, slot: int = 0) -> Optional[Tuple[int, int]]:
    """Line and column recorded by the loader; None for keys added after loading."""
    data = node.lc.data
    if not data or index not in data:
        return None
    entry = data[index]
    return entry[slot], entry[slot + 1]


def guess_layout(doc: Any) -> Tuple[int, int, int]:
    """
    Returns the (mapping, sequence, offset) indentation the document was
    written with, falling back to DEFAULT_LAYOUT for whatever the
    document does not show (or when it was not loaded from text).
    """
    mapping: Optional[int] = None
    sequence: Optional[int] = None
    offset: Optional[int] = None

    for parent, key, value in _block_children(doc):
        key_mark = _mark(parent, key)
        value_mark = _mark(parent, key, slot=2)
        if key_mark is None or value_mark is None:
            continue
        key_col = key_mark[1]

        if isinstance(value, CommentedMap) and mapping is None:
            first = _mark(value, next(iter(value)))
            if first is not None and first[0] > key_mark[0]:
                mapping = first[1] - key_col
        elif isinstance(value, CommentedSeq) and sequence is None:
            item = _mark(value, 0)
            # The sequence node starts at its first dash
            if item is not None and value_mark[0] > key_mark[0]:
                offset = value_mark[1] - key_col
                sequence = item[1] - key_col

        if mapping is not None and sequence is not None:
            break

    default_mapping, default_sequence, default_offset = DEFAULT_LAYOUT
    if sequence is None or offset is None or offset < 0 or sequence < offset + 2:
        sequence, offset = default_sequence, default_offset
    if mapping is None or mapping < 1:
        mapping = default_mapping
    return mapping, sequence, offset


class KubeExporter:
    """
    The Reconstructor: Converts round-trip documents back to YAML strings.
    """

    def dump(self, doc: Any) -> str:
        stream = io.StringIO()
        round_trip_yaml(guess_layout(doc)).dump(doc, stream)
        return stream.getvalue()

    def export(self, docs: Union[Any, List[Union[Any, str]]], explicit_start: bool = False) -> str:
        """
        Exports documents into a single string with explicit '---'
        separators. Items that are already rendered text are written as-is.
        `explicit_start` also puts a marker before the first document.
        """
        stream = io.StringIO()
        docs = docs if isinstance(docs, list) else [docs]

        written = 0
        for doc in docs:
            if doc is None:
                continue
            if written > 0 or explicit_start:
                stream.write("---\n")
            written += 1

            if isinstance(doc, str):
                stream.write(doc if doc.endswith("\n") else doc + "\n")
            else:
                stream.write(self.dump(doc))

        return stream.getvalue()
