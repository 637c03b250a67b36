"""
Legacy Edge (EdgeHTML) WebCache constants.

Legacy Edge and IE 10/11 keep history, cookies and downloads in the
WebCacheV01.dat ESE database; reading list and favorites live in
Spartan.edb.
"""

from __future__ import annotations

SOURCE_LABEL = "Edge"
PROGRAM_NAME = "Microsoft Edge"

WEBCACHE_NAME = "WebCacheV01.dat"
WEBCACHE_PREFIX = "WebCacheV01"
SPARTAN_NAME = "Spartan.edb"

# Decoder location relative to the tool install root, and the namespace
# (module folder) it ships under
ESE_TOOL_NAME = "ESEDatabaseView"
ESE_TOOL_RELATIVE_PATH = "ESEDatabaseView/ESEDatabaseView.exe"
ESE_TOOL_NAMESPACE = "edge_legacy"
ESE_TOOL_INSTALL_HINT = (
    "Download ESEDatabaseView from NirSoft and point tool_paths.ESEDatabaseView "
    "in config/config.yml at ESEDatabaseView.exe"
)

# History container dumps: file name fragment, row keyword and column names
HISTORY_DUMP_FRAGMENT = "container"
HISTORY_KEYWORD_VISIT = "Visited:"
HISTORY_HEAD_URL = "url"
HISTORY_HEAD_ACCESSTIME = "accessedtime"
URL_USER_SEPARATOR = "@"
