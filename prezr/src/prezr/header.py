"""C header generation for resource packs.

Each pack contributes one section to ``prezr.packages.h``: the checksum the
runtime validates on load, an enum naming every image by its index in the
blob, and load/unload glue compiled into exactly one translation unit.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

import jinja2

from .blob import ImageRecord

PACKAGES_PREAMBLE = "#pragma once\n\n"

pack_header_template = """\
// ------------------------- {{ pack }} -------------------------
#define {{ prefix }}CHECKSUM 0x{{ '%X'|format(checksum) }}

typedef enum prezr_pack_{{ pack }}_e {
{% for record in records %}
  {{ prefix }}{{ record.name }}, // {{ record.width }}x{{ record.height }} {{ record.format.label }}
{% endfor %}
  {{ prefix }}COUNT
} prezr_pack_{{ pack }}_t;

#if defined(PREZR_IMPORT) || defined(PREZR_IMPORT_{{ pack_upper }}_PACK)
prezr_pack_t prezr_{{ pack }} = { NULL, 0, NULL };
void prezr_load_{{ pack }}() {
  int r = prezr_init(&prezr_{{ pack }}, RESOURCE_ID_{{ prefix }}PACK, {{ prefix }}CHECKSUM);
  if (r != PREZR_OK)
    APP_LOG(APP_LOG_LEVEL_ERROR, "PRezr package '{{ pack }}' failed with code %d", r);
  if (prezr_{{ pack }}.numResources != {{ prefix }}COUNT)
    APP_LOG(APP_LOG_LEVEL_ERROR, "PRezr package '{{ pack }}' resource count mismatch");
}
void prezr_unload_{{ pack }}() {
  prezr_destroy(&prezr_{{ pack }});
}
#else
extern prezr_pack_t prezr_{{ pack }};
extern void prezr_load_{{ pack }}();
extern void prezr_unload_{{ pack }}();
#endif // PREZR_IMPORT

"""

_environment = jinja2.Environment(
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=jinja2.StrictUndefined,
)


def make_handle(stem: str) -> str:
    """Turn a file stem into an upper-case C identifier fragment."""

    handle = re.sub(r"[^0-9A-Za-z_]", "_", stem).upper()
    if not handle:
        return "_"
    if handle[0].isdigit():
        handle = "_" + handle
    return handle


def enum_prefix(pack_name: str) -> str:
    return f"PREZR_{make_handle(pack_name)}_"


def render_pack_header(pack_name: str, records: Sequence[ImageRecord], checksum: int) -> str:
    """Render the header section describing one pack."""

    pack = make_handle(pack_name).lower()
    template = _environment.from_string(pack_header_template)
    return template.render(
        pack=pack,
        pack_upper=pack.upper(),
        prefix=enum_prefix(pack_name),
        checksum=checksum,
        records=records,
    )


def render_packages_header(sections: Iterable[str]) -> str:
    return PACKAGES_PREAMBLE + "".join(sections)
