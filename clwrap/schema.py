"""
Validated, self-describing configuration models

The `schema` decorator turns a plain class into a frozen `pydantic`
dataclass that rejects unknown fields, and attaches a `rich` table renderer.
Models are documented in their class doc string:

```python
@schema
class Output:
    \"""
    Where generated modules go

    Generated modules are written next to their kernel source files unless
    a directory is given.

    Fields
    ------

    directory:  directory for generated modules
    suffix:     file name suffix of generated modules
    \"""

    directory: Optional[str] = None
    suffix: str = "_kernels.py"
```

The first line is the title, the following paragraph the caption, and the
lines below `Fields` describe each field; `Output.describe("suffix")` returns
the description, e.g. for use as command line help. Fields whose value is
itself a schema model are rendered as nested tables.
"""

from typing import Dict, NamedTuple


class ModelDoc(NamedTuple):
    title: str
    caption: str
    fields: Dict[str, str]


def parse_docstring(doc):
    """
    Split a model doc string into its title, caption, and field descriptions.
    """
    from textwrap import dedent

    title = str()
    caption = list()
    fields = dict()
    lines = iter(dedent(doc or str()).splitlines())

    for line in lines:
        if line.strip() == "Fields":
            if next(lines, str()).strip() != "------":
                raise ValueError("expect a line of '-' below 'Fields'")
            if next(lines, str()).strip():
                raise ValueError("expect a blank line below 'Fields'")
            break
        elif not title:
            title = line.strip()
        elif line.strip():
            caption.append(line.strip())

    for line in lines:
        if line.strip():
            key, description = (x.strip() for x in line.split(":", 1))
            fields[key] = description

    return ModelDoc(title, " ".join(caption), fields)


def is_schema(value):
    return hasattr(type(value), "__modeldoc__")


def configmodel_rich_table(model, console=None, options=None):
    """
    Yield a rich-renderable table of a model's fields, values and descriptions.
    """
    from rich.table import Table

    doc = model.__modeldoc__
    name = model.__class__.__name__

    table = Table(
        title=f"{name}: {doc.title.lower()}" if doc.title else name,
        caption=doc.caption,
        caption_justify="left",
        title_justify="left",
        show_header=False,
        expand=True,
    )
    table.add_column("property", style="cyan", no_wrap=True)
    table.add_column("value", style="green")
    table.add_column("description", style="magenta")

    for key in model.__dataclass_fields__:
        value = getattr(model, key)
        if is_schema(value):
            table.add_row(key, next(configmodel_rich_table(value)), None)
        else:
            table.add_row(key, repr(value), doc.fields.get(key))

    yield table


def schema(cls):
    from pydantic import ConfigDict
    from pydantic.dataclasses import dataclass

    doc = parse_docstring(cls.__doc__)
    cls = dataclass(frozen=True, config=ConfigDict(extra="forbid"))(cls)

    for key in doc.fields:
        if key not in cls.__dataclass_fields__:
            raise ValueError(f"{cls.__name__} documents unknown field {key}")

    def describe(cls, key):
        return cls.__modeldoc__.fields.get(key)

    cls.__modeldoc__ = doc
    cls.describe = classmethod(describe)
    cls.rich_table = configmodel_rich_table

    return cls
