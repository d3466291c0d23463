from __future__ import annotations

from pathlib import Path

from ..models.descriptor import ImportDescriptor

"""Example input file for an import descriptor.

The file has a title line with the labels of the mapped fields and one line
of example values, in source column order. Separators inside values are
replaced by '/' so the example never needs quoting.
"""


def clean_separators(value: str) -> str:
    return value.replace(",", "/").replace(";", "/")


def example_lines(descriptor: ImportDescriptor, separator: str = ",") -> list[str]:
    """Return [title line, record line] without line terminators.

    Gaps in the column mapping produce empty columns.
    """
    if not descriptor.fields:
        return ["", ""]
    by_position = {f.position: f for f in descriptor.fields}
    width = max(by_position)
    titles: list[str] = []
    values: list[str] = []
    for position in range(1, width + 1):
        f = by_position.get(position)
        if f is None:
            titles.append("")
            values.append("")
            continue
        label = f.label + ("*" if f.required else "")
        titles.append(clean_separators(label))
        values.append(clean_separators(f.example or ""))
    return [separator.join(titles), separator.join(values)]


def write_example(descriptor: ImportDescriptor, path: Path, separator: str = ",") -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    title, record = example_lines(descriptor, separator)
    path.write_text(f"{title}\n{record}\n", encoding="utf-8")
    return path
