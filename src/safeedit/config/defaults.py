"""Starter .safeedit.toml template written by ``safeedit init``."""

DEFAULT_TOML = """\
# safeedit configuration
version = "1.0"

[diff]
context = 3               # lines of context around each change
pager = "auto"            # auto | always | never
color = "auto"            # auto | always | never
# max_lines = 5000        # preview render caps
# max_bytes = 5242880
# max_line_bytes = 65536
# page_size = 200

[apply]
backups = true            # copy the original to .bak / .bakN before writing
# undo_log = ".safeedit/undo"   # directory for reverse patches

[log]
enabled = true
path = ".safeedit/change_log.jsonl"
max_entries = 500

[encoding]
# default = "utf-8"       # force an encoding instead of detecting it
"""
